from __future__ import annotations

import logging

import pytest

from snaptex.core.bibliography import BibEntry
from snaptex.core.config import PreviewConfig
from snaptex.core.context import RuleContext
from snaptex.core.diagnostics import LoggingEmitter
from snaptex.core.renderer import (
    CachedBlock,
    IncrementalRenderer,
    PatchPayload,
    iter_payloads,
    render_document,
)
from snaptex.core.rules import RulePhase, substitutes

from conftest import RecordingEmitter, fake_math


def test_first_render_is_full(make_renderer) -> None:
    renderer = make_renderer()
    payload = renderer.render("Intro text.\n\n$$x=1$$\n\nMore text.")

    assert payload.type == "full"
    assert [block.text for block in renderer.blocks] == ["Intro text.", "$$x=1$$", "More text."]
    assert payload.html == renderer.cached_html
    assert payload.html.count('class="latex-block"') == 3
    assert '<div class="latex-block" data-index="1"><span class="math-display">x=1</span>' in (
        payload.html
    )


def test_identical_render_is_an_empty_patch(make_renderer) -> None:
    renderer = make_renderer()
    renderer.render("A\n\nB\n\nC")
    payload = renderer.render("A\n\nB\n\nC")

    assert payload.type == "patch"
    assert payload.start == 3
    assert payload.delete_count == 0
    assert payload.htmls == ()
    assert payload.shift == 0


def test_single_block_edit_is_patched(make_renderer) -> None:
    renderer = make_renderer()
    renderer.render("A\n\nB\n\nC")
    before = renderer.cached_blocks
    payload = renderer.render("A\n\nB2\n\nC")

    assert payload.type == "patch"
    assert (payload.start, payload.delete_count, payload.shift) == (1, 1, 0)
    assert len(payload.htmls) == 1
    assert "B2" in payload.htmls[0]
    assert renderer.last_diff is not None
    assert renderer.last_diff.end == 1
    after = renderer.cached_blocks
    assert after[0] is before[0]
    assert after[2] is before[2]


def test_insertion_reindexes_following_blocks(make_renderer) -> None:
    renderer = make_renderer()
    renderer.render("A\n\nB\n\nC")
    payload = renderer.render("A\n\nX\n\nY\n\nB\n\nC")

    assert (payload.start, payload.delete_count, payload.shift) == (1, 0, 2)
    assert len(payload.htmls) == 2
    cached = renderer.cached_blocks
    assert [block.index for block in cached] == [0, 1, 2, 3, 4]
    assert 'data-index="3"' in cached[3].html
    assert 'data-index="4"' in cached[4].html
    assert ">B<" in cached[3].html


def test_cache_matches_a_fresh_render(make_renderer) -> None:
    renderer = make_renderer()
    renderer.render("One\n\nTwo\n\nThree")
    renderer.render("One\n\nNew\n\nTwo\n\nThree")
    renderer.render("One\n\nTwo\n\nThree and more")

    fresh = make_renderer()
    fresh.render("One\n\nTwo\n\nThree and more")
    assert renderer.cached_html == fresh.cached_html


def test_macro_change_forces_full_render(make_renderer, emitter: RecordingEmitter) -> None:
    renderer = make_renderer()
    template = "\\newcommand{{\\R}}{{{0}}}\n\\begin{{document}}\n$\\R$\n\\end{{document}}"
    renderer.render(template.format("\\mathbb{R}"))
    payload = renderer.render(template.format("\\mathbf{R}"))

    assert payload.type == "full"
    assert renderer.metadata.macros == {"\\R": "\\mathbf{R}"}
    assert emitter.named("cache_invalidated") == [{"reason": "macros", "dropped": 1}]


def test_title_change_rerenders_maketitle_block(make_renderer) -> None:
    renderer = make_renderer()
    template = "\\title{{{0}}}\n\\begin{{document}}\n\\maketitle\n\nBody\n\\end{{document}}"
    first = renderer.render(template.format("Old"))
    payload = renderer.render(template.format("New"))

    assert '<h1 class="latex-title">Old</h1>' in first.html
    assert payload.type == "patch"
    assert (payload.start, payload.delete_count) == (0, 1)
    assert '<h1 class="latex-title">New</h1>' in payload.htmls[0]
    assert "snaptex-meta" not in payload.htmls[0]


def test_block_lines_follow_the_document(make_renderer) -> None:
    renderer = make_renderer()
    renderer.render("\\title{T}\n\\begin{document}\n\\maketitle\n\nBody\n\\end{document}")

    assert [block.start_line for block in renderer.blocks] == [2, 4]
    position = renderer.block_index_for_line(4)
    assert position is not None
    assert position.index == 1
    assert renderer.line_for_block_index(0) == 2


def test_reset_forces_full_render(make_renderer, emitter: RecordingEmitter) -> None:
    renderer = make_renderer()
    renderer.render("A\n\nB")
    renderer.reset()

    assert renderer.cached_blocks == ()
    assert renderer.blocks == ()
    assert renderer.render("A\n\nB").type == "full"
    assert emitter.named("cache_invalidated")[0]["reason"] == "reset"


def test_large_edits_fall_back_to_full(make_renderer) -> None:
    renderer = make_renderer(PreviewConfig(full_render_threshold=1))
    renderer.render("A\n\nB")

    assert renderer.render("A\n\nB\n\nC").type == "patch"
    assert renderer.render("C\n\nD\n\nE").type == "full"


def test_crlf_and_sentinels_are_normalised(make_renderer) -> None:
    renderer = make_renderer()
    renderer.render("A\r\n\r\nB\ue000")

    assert [block.text for block in renderer.blocks] == ["A", "B"]


def test_failing_rule_yields_error_block(make_renderer, emitter: RecordingEmitter) -> None:
    @substitutes(phase=RulePhase.PRE, priority=5, name="explode")
    def explode(text: str, context: RuleContext) -> str:
        if "boom" in text:
            raise ValueError("kaboom")
        return text

    renderer = make_renderer()
    renderer.register_rule(explode)
    renderer.render("fine\n\nboom <here>")

    cached = renderer.cached_blocks
    assert 'class="latex-error"' in cached[1].html
    assert "kaboom" in cached[1].html
    assert "boom &lt;here&gt;" in cached[1].html
    assert 'class="latex-error"' not in cached[0].html
    assert len(emitter.errors) == 1
    message, exc = emitter.errors[0]
    assert "block 1" in message
    assert isinstance(exc, ValueError)


def test_register_rule_invalidates_cache(make_renderer, emitter: RecordingEmitter) -> None:
    @substitutes(phase=RulePhase.POST, priority=99, name="shout")
    def shout(text: str, context: RuleContext) -> str:
        return text.upper()

    renderer = make_renderer()
    renderer.render("quiet")
    renderer.register_rule(shout)
    payload = renderer.render("quiet")

    assert payload.type == "full"
    assert "QUIET" in payload.html
    assert emitter.named("cache_invalidated") == [{"reason": "rules", "dropped": 1}]


def test_citations_follow_bibliography_updates(make_renderer) -> None:
    entry = BibEntry(key="knuth84", type="book", fields={"year": "1984"}, authors=("Knuth",))
    renderer = make_renderer(bibliography={"knuth84": entry})

    assert "Knuth (1984)" in renderer.render("See \\citet{knuth84}.").html

    renderer.set_bibliography({})
    payload = renderer.render("See \\citet{knuth84}.")
    assert payload.type == "full"
    assert "Knuth (1984)" not in payload.html
    assert ">knuth84</a>" in payload.html


def test_recoveries_are_reported(make_renderer, emitter: RecordingEmitter) -> None:
    renderer = make_renderer()
    renderer.render("\\textbf{open\n\nnext")

    assert emitter.named("splitter_recovery") == [{"kind": "brace", "line": 0}]


def test_render_events(make_renderer, emitter: RecordingEmitter) -> None:
    renderer = make_renderer()
    renderer.render("A")
    renderer.render("B")

    events = emitter.named("render_patch")
    assert events[0] == {"type": "full", "blocks": 1}
    assert events[1] == {"type": "patch", "start": 0, "delete_count": 1, "inserted": 1}


def test_custom_block_class_is_escaped(make_renderer) -> None:
    renderer = make_renderer(PreviewConfig(block_class='x"y'))
    renderer.render("A")

    assert renderer.cached_html.startswith('<div class="x&quot;y" data-index="0">')


def test_custom_markup_renderer(make_renderer) -> None:
    renderer = make_renderer(markup_renderer=lambda text: f"<pre>{text}</pre>")
    renderer.render("plain")

    assert renderer.cached_html == '<div class="latex-block" data-index="0"><pre>plain</pre></div>'


def test_full_document_renders_with_real_backends(caplog: pytest.LogCaptureFixture) -> None:
    source = "\n".join(
        [
            "\\documentclass{article}",
            "\\title{Notes}",
            "\\newcommand{\\R}{\\mathbb{R}}",
            "\\begin{document}",
            "\\maketitle",
            "",
            "\\section{Intro}\\label{sec:intro}",
            "",
            "Let $x \\in \\R$ be \\textbf{positive}, see \\ref{sec:intro}.",
            "",
            "\\begin{theorem}[Bound]",
            "We have $$x^2 \\geq 0.$$",
            "\\end{theorem}",
            "\\end{document}",
        ]
    )
    with caplog.at_level(logging.DEBUG, logger="snaptex"):
        html = render_document(source, emitter=LoggingEmitter(), load_entry_points=False)

    assert '<h1 class="latex-title">Notes</h1>' in html
    assert '<h2 id="sec:intro">Intro</h2>' in html
    assert "<strong>positive</strong>" in html
    assert '<span class="math-inline"><math' in html
    assert '<div class="math-display"><math' in html
    assert 'class="latex-theorem-header">Theorem</strong>&nbsp;(Bound)' in html
    assert "\ue000" not in html
    assert any("Full render" in record.message for record in caplog.records)


def test_iter_payloads() -> None:
    payloads = iter_payloads(
        ["A\n\nB", "A\n\nC"], math_renderer=fake_math, load_entry_points=False
    )

    assert [payload.type for payload in payloads] == ["full", "patch"]
    assert payloads[1].to_dict() == {
        "type": "patch",
        "start": 1,
        "deleteCount": 1,
        "htmls": ['<div class="latex-block" data-index="1"><p>C</p></div>'],
        "shift": 0,
    }


def test_payload_wire_format() -> None:
    assert PatchPayload(type="full", html="<p>x</p>").to_dict() == {
        "type": "full",
        "html": "<p>x</p>",
    }


def test_cached_block_reindexing() -> None:
    block = CachedBlock(text="A", html='<div class="latex-block" data-index="2">A</div>', index=2)

    assert block.reindexed(2) is block
    moved = block.reindexed(5)
    assert moved.index == 5
    assert moved.html == '<div class="latex-block" data-index="5">A</div>'
    assert moved.text == "A"


def test_extra_rules_are_loaded_from_config() -> None:
    config = PreviewConfig(extra_rules=["snaptex.handlers.floats"])
    renderer = IncrementalRenderer(config, math_renderer=fake_math, load_entry_points=False)

    assert renderer.engine.registry.names().count("floats") == 1


def test_typing_into_an_empty_document_is_full(make_renderer) -> None:
    renderer = make_renderer()
    assert renderer.render("").type == "full"

    payload = renderer.render("A\n\nB")

    assert payload.type == "full"
    assert payload.html.count('class="latex-block"') == 2


def test_clearing_and_retyping_is_full(make_renderer) -> None:
    renderer = make_renderer()
    renderer.render("A\n\nB")
    assert renderer.render("").type == "patch"

    assert renderer.render("C").type == "full"


def test_broken_surrogate_in_title_renders(make_renderer) -> None:
    renderer = make_renderer()
    source = "\\title{x\ud800}\n\\begin{document}\n\\maketitle\n\nBody\n\\end{document}"

    payload = renderer.render(source)

    assert payload.type == "full"
    assert renderer.metadata.title == "x\ud800"
    assert len(renderer.blocks) == 2


@pytest.mark.parametrize(
    "source",
    [
        "",
        "\ue000\ue001",
        "{" * 40,
        "}" * 40,
        "$$",
        "\\[",
        "\\]",
        "\\begin{document}",
        "\\end{document}\\begin{document}",
        "\\begin{theorem}" * 20,
        "\\end{figure}\n\n\\end{figure}",
        "\\title{",
        "\\newcommand",
        "\\newcommand{\\x}{\\x}$\\x$",
        "\x00\r\r\n\t",
        "\\\\" * 5 + "$",
        "\\ref{}\\cite{}\\label{}",
        "\\begin{figure}\\caption{",
        "\\author{\udfff}\\maketitle",
    ],
)
def test_render_accepts_malformed_input(make_renderer, source: str) -> None:
    renderer = make_renderer()

    first = renderer.render(source)
    second = renderer.render(source + "\n\nTail")

    assert isinstance(first, PatchPayload)
    assert isinstance(second, PatchPayload)
    assert second.to_dict()["type"] in {"full", "patch"}


def test_runaway_macro_renders_as_math_error() -> None:
    source = "\\newcommand{\\loop}{\\loop\\loop\\loop\\loop\\loop}\n\nValue $\\loop$."
    renderer = IncrementalRenderer(
        PreviewConfig(max_macro_expansion=500), load_entry_points=False
    )

    renderer.render(source)

    assert 'class="math-inline math-error"' in renderer.cached_html
