"""Custom exception hierarchy for the incremental preview pipeline."""

from __future__ import annotations


class SnapTexError(RuntimeError):
    """Base exception for preview rendering failures."""


class ProtectionDepthError(SnapTexError):
    """Raised when protected tokens keep expanding past the resolution limit."""

    def __init__(self, message: str, *, unresolved: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.unresolved = unresolved


class BlockRenderError(SnapTexError):
    """Raised when a single block cannot be converted into HTML."""

    def __init__(self, message: str, *, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class MacroExpansionError(SnapTexError):
    """Raised when user macros expand past the allowed size."""


class RuleRegistrationError(SnapTexError):
    """Raised when a substitution rule cannot be registered or loaded."""


class ConfigurationError(SnapTexError):
    """Raised when a configuration file cannot be loaded or validated."""


class BibliographyError(SnapTexError):
    """Raised when a bibliography resource cannot be parsed."""


__all__ = [
    "BibliographyError",
    "BlockRenderError",
    "ConfigurationError",
    "MacroExpansionError",
    "ProtectionDepthError",
    "RuleRegistrationError",
    "SnapTexError",
]
