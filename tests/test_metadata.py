from __future__ import annotations

from snaptex.core.metadata import (
    DocumentMetadata,
    extract_body,
    extract_metadata,
    find_group_end,
    metadata_fingerprint,
    normalize_newlines,
    strip_comments,
)


PREAMBLE = r"""\documentclass{article}
\title{A {Nested} Title}
\author{Ada \and Grace}
\date{2024}
\newcommand{\R}{\mathbb{R}}
\renewcommand\norm[1]{\left\| #1 \right\|}
\DeclareMathOperator*{\argmax}{arg\,max}
\def\half#1{\frac{#1}{2}}
\begin{document}
Body
\end{document}
"""


def test_fields_are_extracted() -> None:
    data = extract_metadata(PREAMBLE).data

    assert data.title == "A {Nested} Title"
    assert data.author == "Ada <br/> Grace"
    assert data.date == "2024"


def test_macros_are_extracted() -> None:
    macros = extract_metadata(PREAMBLE).data.macros

    assert macros == {
        "\\R": "\\mathbb{R}",
        "\\norm": "\\left\\| #1 \\right\\|",
        "\\argmax": "\\operatorname*{arg\\,max}",
        "\\half": "\\frac{#1}{2}",
    }


def test_line_numbers_are_preserved() -> None:
    source = "\\title{Multi\nline}\n\\newcommand{\\x}{\n1}\nText"
    cleaned = extract_metadata(source).cleaned_text

    assert cleaned.count("\n") == source.count("\n")
    assert cleaned.split("\n")[-1] == "Text"
    assert "\\title" not in cleaned
    assert "\\newcommand" not in cleaned


def test_providecommand_keeps_existing_definition() -> None:
    source = "\\newcommand{\\a}{1}\n\\providecommand{\\a}{2}\n\\providecommand{\\b}{3}"
    macros = extract_metadata(source).data.macros

    assert macros == {"\\a": "1", "\\b": "3"}


def test_commented_definitions_are_ignored() -> None:
    data = extract_metadata("% \\title{Hidden}\n\\title{Shown}").data

    assert data.title == "Shown"


def test_strip_comments_respects_escapes() -> None:
    assert strip_comments("50\\% done % note\nnext") == "50\\% done \nnext"
    assert strip_comments("\\\\% comment") == "\\\\"


def test_normalize_newlines() -> None:
    assert normalize_newlines("a\r\nb\rc") == "a\nb\nc"


def test_find_group_end() -> None:
    text = "{a{b}\\}c}"
    assert find_group_end(text, 0) == len(text) - 1
    assert find_group_end("{open", 0) == -1


def test_extract_body_reports_line_offset() -> None:
    body, offset = extract_body("pre\namble\n\\begin{document}\nBody\n\\end{document}\ntrailer")

    assert offset == 2
    assert body == "\nBody\n"


def test_extract_body_without_document_environment() -> None:
    assert extract_body("just text") == ("just text", 0)


def test_fingerprint_tracks_title_fields() -> None:
    base = metadata_fingerprint(DocumentMetadata(title="T", author="A"))

    assert base == metadata_fingerprint(DocumentMetadata(title="T", author="A"))
    assert base != metadata_fingerprint(DocumentMetadata(title="U", author="A"))
    assert base != metadata_fingerprint(DocumentMetadata(title="T", date="2024"))
    assert base.startswith("<!--")


def test_macro_signature_is_order_independent() -> None:
    first = DocumentMetadata(macros={"\\a": "1", "\\b": "2"})
    second = DocumentMetadata(macros={"\\b": "2", "\\a": "1"})

    assert first.macro_signature() == second.macro_signature()


def test_fingerprint_accepts_lone_surrogates() -> None:
    broken = metadata_fingerprint(DocumentMetadata(title="x\ud800"))

    assert broken.startswith("<!-- snaptex-meta:")
    assert broken != metadata_fingerprint(DocumentMetadata(title="x"))
