"""Bibliography loading backed by pybtex."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import re

from pybtex.database import BibliographyData, parse_file, parse_string
from pybtex.exceptions import PybtexError

from .exceptions import BibliographyError


__all__ = [
    "BibEntry",
    "entries_from_data",
    "find_bibliography_resource",
    "load_bibliography",
    "parse_bibliography",
]

_BIBLIOGRAPHY_COMMAND = re.compile(r"\\(?:bibliography|addbibresource)\s*(?:\[[^\]]*\])?\{([^}]+)\}")


def _plain(value: str) -> str:
    return re.sub(r"[{}]", "", value).strip()


@dataclass(frozen=True, slots=True)
class BibEntry:
    """Flattened view of a bibliography entry."""

    key: str
    type: str
    fields: dict[str, str] = field(default_factory=dict)
    authors: tuple[str, ...] = ()

    @property
    def year(self) -> str | None:
        return self.fields.get("year")

    def author_label(self) -> str | None:
        if not self.authors:
            return None
        if len(self.authors) == 1:
            return self.authors[0]
        if len(self.authors) == 2:
            return f"{self.authors[0]} and {self.authors[1]}"
        return f"{self.authors[0]} et al."

    def label(self, style: str = "cite") -> str:
        """Return the inline text used for a citation of the given style."""
        author = self.author_label()
        year = self.year
        if style == "citeyear":
            return year or self.key
        if author is None or year is None:
            return author or self.key
        if style == "citet":
            return f"{author} ({year})"
        if style == "citep":
            return f"{author}, {year}"
        return f"{author} {year}"


def entries_from_data(data: BibliographyData) -> dict[str, BibEntry]:
    """Convert pybtex data into :class:`BibEntry` objects keyed by citation key."""
    entries: dict[str, BibEntry] = {}
    for key, entry in data.entries.items():
        people = entry.persons.get("author") or entry.persons.get("editor") or []
        authors = tuple(
            _plain(" ".join(person.last_names)) or _plain(str(person)) for person in people
        )
        fields = {name.lower(): _plain(str(value)) for name, value in entry.fields.items()}
        entries[key] = BibEntry(key=key, type=entry.type.lower(), fields=fields, authors=authors)
    return entries


def parse_bibliography(payload: str) -> dict[str, BibEntry]:
    """Parse a BibTeX string."""
    try:
        data = parse_string(payload, "bibtex")
    except PybtexError as exc:
        raise BibliographyError(f"Failed to parse bibliography: {exc}") from exc
    return entries_from_data(data)


def load_bibliography(path: Path | str) -> dict[str, BibEntry]:
    """Parse a ``.bib`` file from disk."""
    source = Path(path)
    try:
        data = parse_file(str(source), "bibtex")
    except (OSError, PybtexError) as exc:
        raise BibliographyError(f"Failed to load bibliography '{source}': {exc}") from exc
    return entries_from_data(data)


def find_bibliography_resource(text: str) -> str | None:
    """Return the first bibliography resource referenced by ``text``."""
    match = _BIBLIOGRAPHY_COMMAND.search(text)
    if match is None:
        return None
    resource = match.group(1).split(",")[0].strip()
    if not resource:
        return None
    return resource if resource.endswith(".bib") else f"{resource}.bib"
