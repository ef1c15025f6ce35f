"""Document structure rules: theorems, title, abstract, sections and lists."""

from __future__ import annotations

import html
import re

from bs4 import BeautifulSoup, NavigableString, Tag
from slugify import slugify

from ..core.config import THEOREM_ENVIRONMENTS
from ..core.context import RuleContext
from ..core.protection import strip_tokens
from ..core.rules import RulePhase, substitutes
from .basic import NO_INDENT_MARKER


ABSTRACT_START = "%%%ABSTRACT_START%%%"
ABSTRACT_END = "%%%ABSTRACT_END%%%"
KEYWORDS_START = "%%%KEYWORDS_START%%%"
KEYWORDS_END = "%%%KEYWORDS_END%%%"

SECTION_LEVELS = {
    "part": 1,
    "chapter": 1,
    "section": 2,
    "subsection": 3,
    "subsubsection": 4,
    "paragraph": 5,
    "subparagraph": 6,
}

_THEOREM_PATTERN = re.compile(
    r"\\begin\{(" + "|".join(THEOREM_ENVIRONMENTS) + r")\}(?:\[(.*?)\])?(.*?)\\end\{\1\}",
    re.DOTALL | re.IGNORECASE,
)
_PROOF_BEGIN = re.compile(r"\\begin\{proof\}(?:\[(.*?)\])?", re.IGNORECASE)
_PROOF_END = re.compile(r"\\end\{proof\}", re.IGNORECASE)
_ABSTRACT_PATTERN = re.compile(r"\\begin\{abstract\}(.*?)\\end\{abstract\}", re.DOTALL)
_KEYWORDS_PATTERN = re.compile(r"\\begin\{keywords?\}(.*?)\\end\{keywords?\}", re.DOTALL)
_KEYWORD_SEPARATOR = re.compile(r"\s*\\sep\b\s*")
_SECTION_PATTERN = re.compile(
    r"\\(" + "|".join(SECTION_LEVELS) + r")(\*?)\s*(?:\[[^\]]*\])?"
    r"\{((?:[^{}]|\{[^{}]*\})*)\}[ \t]*(?:\\label\{([^}]+)\})?[ \t]*"
)
_LIST_PATTERN = re.compile(
    r"\\begin\{(itemize|enumerate|description)\}(?:\[[^\]]*\])?"
    r"|\\end\{(?:itemize|enumerate|description)\}"
    r"|\\item(?:\[(.*?)\])?[ \t]*"
)
_PLAIN_COMMAND = re.compile(r"\\[a-zA-Z@]+\*?|[{}$]")


THEOREM_TITLES = {"thm": "Theorem", "prop": "Proposition", "condbis": "Condition"}


def _display_name(name: str) -> str:
    name = name.lower()
    return THEOREM_TITLES.get(name) or name[:1].upper() + name[1:]


def _heading_slug(content: str) -> str:
    return slugify(_PLAIN_COMMAND.sub(" ", strip_tokens(content)), separator="-")


@substitutes(phase=RulePhase.PRE, priority=50, name="theorems_and_proofs")
def theorems_and_proofs(text: str, context: RuleContext) -> str:
    """Render theorem-like environments with a bold run-in header."""

    def _theorem(match: re.Match[str]) -> str:
        header = (
            '<span class="latex-thm-head"><strong class="latex-theorem-header">'
            f"{html.escape(_display_name(match.group(1)))}</strong>"
        )
        if match.group(2):
            header += f"&nbsp;({match.group(2)})"
        header += ".</span>&nbsp; "
        return f"\n{context.protect(header, 'theorem')}{match.group(3).strip()}\n"

    def _proof(match: re.Match[str]) -> str:
        title = f"Proof ({match.group(1)})." if match.group(1) else "Proof."
        return f"\n{context.protect(NO_INDENT_MARKER)}**{title}** "

    text = _THEOREM_PATTERN.sub(_theorem, text)
    text = _PROOF_BEGIN.sub(_proof, text)
    return _PROOF_END.sub(
        lambda _: " " + context.protect('<span class="latex-qed" style="float:right;">QED</span>')
        + "\n",
        text,
    )


@substitutes(phase=RulePhase.PRE, priority=60, name="maketitle_and_abstract")
def maketitle_and_abstract(text: str, context: RuleContext) -> str:
    """Expand ``\\maketitle`` from document metadata and mark the abstract."""
    marker = context.runtime.get("title_marker", "\\maketitle")
    if marker in text:
        metadata = context.metadata
        title_block = ""
        if metadata.title:
            title_block += f'<h1 class="latex-title">{metadata.title}</h1>'
        if metadata.author:
            title_block += f'<div class="latex-author">{metadata.author}</div>'
        if metadata.date:
            title_block += f'<div class="latex-date">{metadata.date}</div>'
        replacement = context.protect_display(title_block, "title") if title_block else "\n\n"
        text = re.sub(re.escape(marker) + r"[^\n]*", lambda _: replacement, text)

    text = _ABSTRACT_PATTERN.sub(
        lambda match: f"\n\n{ABSTRACT_START}\n\n{match.group(1).strip()}\n\n{ABSTRACT_END}\n\n",
        text,
    )
    return _KEYWORDS_PATTERN.sub(
        lambda match: (
            f"\n\n{KEYWORDS_START}{_KEYWORD_SEPARATOR.sub(', ', match.group(1)).strip()}"
            f"{KEYWORDS_END}\n\n"
        ),
        text,
    )


@substitutes(phase=RulePhase.PRE, priority=70, name="sections")
def sections(text: str, context: RuleContext) -> str:
    """Turn sectioning commands into Markdown headings with stable ids."""

    def _replace(match: re.Match[str]) -> str:
        level, _star, content, label = match.groups()
        content = " ".join(content.split())
        anchor = label.strip() if label else _heading_slug(content)
        prefix = "#" * SECTION_LEVELS[level]
        attributes = f" {{: #{anchor} }}" if anchor else ""
        return f"\n\n{prefix} {content}{attributes}\n\n"

    return _SECTION_PATTERN.sub(_replace, text)


@substitutes(phase=RulePhase.PRE, priority=90, name="lists")
def lists(text: str, context: RuleContext) -> str:
    """Rewrite itemize/enumerate/description environments as Markdown lists."""
    stack: list[str] = []

    def _replace(match: re.Match[str]) -> str:
        token = match.group(0)
        if match.group(1):
            stack.append("ol" if match.group(1) == "enumerate" else "ul")
            return "\n\n"
        if token.startswith("\\end"):
            if stack:
                stack.pop()
            return "\n\n"
        indent = "    " * max(0, len(stack) - 1)
        if match.group(2) is not None:
            return f"\n{indent}- **{match.group(2)}** "
        bullet = "1." if stack and stack[-1] == "ol" else "-"
        return f"\n{indent}{bullet} "

    return _LIST_PATTERN.sub(_replace, text)


def _is_marker(node: Tag, marker: str) -> bool:
    return node.name == "p" and node.get_text(strip=True) == marker


@substitutes(phase=RulePhase.POST, priority=10, name="abstract_markers")
def abstract_markers(text: str, context: RuleContext) -> str:
    """Convert abstract and keyword markers into styled containers."""
    if ABSTRACT_START not in text and KEYWORDS_START not in text:
        return text
    soup = BeautifulSoup(text, "html.parser")

    for start in [node for node in soup.find_all("p") if _is_marker(node, ABSTRACT_START)]:
        container = soup.new_tag("div", attrs={"class": "latex-abstract"})
        title = soup.new_tag("span", attrs={"class": "latex-abstract-title"})
        title.string = "Abstract"
        container.append(title)
        sibling = start.next_sibling
        while sibling is not None:
            following = sibling.next_sibling
            if isinstance(sibling, Tag) and _is_marker(sibling, ABSTRACT_END):
                sibling.decompose()
                break
            container.append(sibling.extract())
            sibling = following
        start.replace_with(container)

    for paragraph in soup.find_all("p"):
        content = paragraph.decode_contents().strip()
        if not (content.startswith(KEYWORDS_START) and content.endswith(KEYWORDS_END)):
            continue
        keywords = content[len(KEYWORDS_START) : -len(KEYWORDS_END)].strip()
        container = soup.new_tag("div", attrs={"class": "latex-keywords"})
        label = soup.new_tag("strong")
        label.string = "Keywords:"
        container.append(label)
        container.append(NavigableString(" "))
        container.append(BeautifulSoup(keywords, "html.parser"))
        paragraph.replace_with(container)

    return str(soup)


__all__ = [
    "ABSTRACT_END",
    "ABSTRACT_START",
    "KEYWORDS_END",
    "KEYWORDS_START",
    "SECTION_LEVELS",
    "THEOREM_TITLES",
    "abstract_markers",
    "lists",
    "maketitle_and_abstract",
    "sections",
    "theorems_and_proofs",
]
