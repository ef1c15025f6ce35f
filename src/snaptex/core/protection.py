"""Opaque-token registry shielding fragile content from the Markdown pass.

Tokens are delimited by two Unicode private-use code points. The renderer
removes those code points from every incoming document, so no document text
can spell a token, and Python-Markdown has no escaping rule that touches them.
"""

from __future__ import annotations

from dataclasses import dataclass
import itertools
import logging
import re

from .exceptions import ProtectionDepthError


logger = logging.getLogger(__name__)

TOKEN_OPEN = "\ue000"
TOKEN_CLOSE = "\ue001"
SENTINELS = (TOKEN_OPEN, TOKEN_CLOSE)

_TOKEN_PATTERN = re.compile(TOKEN_OPEN + r"([0-9a-z]+)\.([a-z0-9_-]+)\.(\d+)" + TOKEN_CLOSE)
_WRAPPED_TOKEN = re.compile(r"<p>\s*(" + _TOKEN_PATTERN.pattern + r")\s*</p>")
_NAMESPACE_PATTERN = re.compile(r"[^a-z0-9_-]+")
_SCOPE_PATTERN = re.compile(r"[^0-9a-z]+")
_SCOPES = itertools.count(1)


def strip_sentinels(text: str) -> str:
    """Remove token delimiters from untrusted text."""
    return text.replace(TOKEN_OPEN, "").replace(TOKEN_CLOSE, "")


def strip_tokens(text: str) -> str:
    """Remove every token from ``text`` without resolving it."""
    return _TOKEN_PATTERN.sub("", text)


def unwrap_display_tokens(html: str) -> str:
    """Drop the paragraph the Markdown pass wraps around standalone tokens."""
    return _WRAPPED_TOKEN.sub(r"\1", html)


@dataclass(frozen=True, slots=True)
class ResolutionReport:
    """Outcome of the latest :meth:`ProtectionRegistry.resolve` call."""

    iterations: int = 0
    unresolved: tuple[str, ...] = ()
    depth_exceeded: bool = False


class ProtectionRegistry:
    """Store protected payloads and substitute them back after rendering."""

    def __init__(self, *, max_depth: int = 15, scope: str | None = None) -> None:
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.max_depth = max_depth
        self._fixed_scope = scope
        self._storage: dict[str, str] = {}
        self._counter = 0
        self.scope = self._next_scope()
        self.last_resolution = ResolutionReport()

    def __len__(self) -> int:
        return len(self._storage)

    def _next_scope(self) -> str:
        if self._fixed_scope is not None:
            return _SCOPE_PATTERN.sub("", self._fixed_scope.lower()) or "0"
        return format(next(_SCOPES), "x")

    def protect(self, content: str, namespace: str = "raw") -> str:
        """Register ``content`` and return the token standing in for it."""
        label = _NAMESPACE_PATTERN.sub("-", namespace.lower()).strip("-") or "raw"
        token = f"{TOKEN_OPEN}{self.scope}.{label}.{self._counter}{TOKEN_CLOSE}"
        self._counter += 1
        self._storage[token] = content
        return token

    def protect_display(self, content: str, namespace: str = "display") -> str:
        """Register block-level content as a paragraph of its own."""
        return f"\n\n{self.protect(content, namespace)}\n\n"

    def contains_tokens(self, text: str) -> bool:
        """Return True when ``text`` still carries any token."""
        return _TOKEN_PATTERN.search(text) is not None

    def resolve(self, text: str, *, strict: bool = False) -> str:
        """Substitute every known token until a fixed point is reached.

        Unknown tokens stay in place. When nested payloads keep producing
        tokens after ``max_depth`` passes the partially resolved text is
        returned, or :class:`ProtectionDepthError` is raised in strict mode.
        """
        current = text
        iterations = 0
        while iterations < self.max_depth:
            replaced = False

            def _substitute(match: re.Match[str]) -> str:
                nonlocal replaced
                payload = self._storage.get(match.group(0))
                if payload is None:
                    return match.group(0)
                replaced = True
                return payload

            updated = _TOKEN_PATTERN.sub(_substitute, current)
            if not replaced:
                break
            current = updated
            iterations += 1

        leftovers = tuple(match.group(0) for match in _TOKEN_PATTERN.finditer(current))
        exceeded = iterations >= self.max_depth and any(
            token in self._storage for token in leftovers
        )
        self.last_resolution = ResolutionReport(
            iterations=iterations, unresolved=leftovers, depth_exceeded=exceeded
        )
        if exceeded:
            message = f"Protected content still nested after {self.max_depth} resolution passes"
            if strict:
                raise ProtectionDepthError(message, unresolved=leftovers)
            logger.warning(message)
        return current

    def reset(self) -> None:
        """Forget every payload and start a new token scope."""
        self._storage.clear()
        self._counter = 0
        self.scope = self._next_scope()
        self.last_resolution = ResolutionReport()


__all__ = [
    "SENTINELS",
    "TOKEN_CLOSE",
    "TOKEN_OPEN",
    "ProtectionRegistry",
    "ResolutionReport",
    "strip_sentinels",
    "strip_tokens",
    "unwrap_display_tokens",
]
