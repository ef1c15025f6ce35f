"""Primary public API for SnapTeX."""

from __future__ import annotations

from snaptex.core.blocks import Block, BlockSplitter, SplitterRecovery, split
from snaptex.core.config import PreviewConfig, SplitterConfig, load_config
from snaptex.core.context import RuleContext
from snaptex.core.diagnostics import DiagnosticEmitter, LoggingEmitter, NullEmitter
from snaptex.core.diff import DiffResult, compute_diff
from snaptex.core.exceptions import (
    BibliographyError,
    BlockRenderError,
    ConfigurationError,
    ProtectionDepthError,
    RuleRegistrationError,
    SnapTexError,
)
from snaptex.core.protection import ProtectionRegistry
from snaptex.core.renderer import (
    CachedBlock,
    IncrementalRenderer,
    PatchPayload,
    render_document,
)
from snaptex.core.rules import RulePhase, substitutes
from snaptex.core.sourcemap import BlockPosition, SourceMap
from snaptex.version import get_version


__version__ = get_version()

__all__ = [
    "BibliographyError",
    "Block",
    "BlockPosition",
    "BlockRenderError",
    "BlockSplitter",
    "CachedBlock",
    "ConfigurationError",
    "DiagnosticEmitter",
    "DiffResult",
    "IncrementalRenderer",
    "LoggingEmitter",
    "NullEmitter",
    "PatchPayload",
    "PreviewConfig",
    "ProtectionDepthError",
    "ProtectionRegistry",
    "RuleContext",
    "RulePhase",
    "RuleRegistrationError",
    "SnapTexError",
    "SourceMap",
    "SplitterConfig",
    "SplitterRecovery",
    "__version__",
    "compute_diff",
    "get_version",
    "load_config",
    "render_document",
    "split",
    "substitutes",
]
