"""Configuration models used by the preview renderer.

SplitterConfig

`brace_lookahead` (`int`)
: Number of characters scanned after a paragraph break to find the brace that
  closes the currently open group. When the closer is not found the group is
  assumed to be a typo and the splitter resets its state.

`math_lookahead` (`int`)
: Number of characters scanned after `$$` or `\\[` to find the closing
  delimiter. The scan also stops at the next paragraph break.

`environment_lookahead` (`int`)
: Number of characters scanned after a paragraph break to find the `\\end`
  marker of the innermost open environment.

`trap_line_threshold` (`int`)
: Maximum number of lines buffered while trapped inside an environment or a
  brace group before the splitter forces a split at the next paragraph break.

`major_environments` (`list[str]`)
: Environments that always start a new block when opened at top level.

`float_environments` (`list[str]`)
: Environments that also end their block when closed at top level.

`ignored_environments` (`list[str]`)
: Environments whose markers are kept as content but never tracked, so the
  paragraph breaks they contain still split blocks.

PreviewConfig

`splitter` (`SplitterConfig`)
: Nested splitter configuration.

`resolve_max_depth` (`int`)
: Number of substitution passes allowed when resolving nested protection
  tokens.

`full_render_threshold` (`int`)
: When more blocks than this are inserted or deleted at once, a full payload
  is emitted instead of a patch.

`max_macro_expansion` (`int`)
: Largest size, in characters, a math snippet may reach while user macros
  are expanded. Larger expansions render as a math error.

`title_marker` (`str`)
: Command whose block receives the title/author/date fingerprint.

`block_class` (`str`)
: CSS class of the wrapper element emitted around each block.

`markdown_extensions` (`list[str]`)
: Python-Markdown extensions used by the generic markup pass.

`extra_rules` (`list[str]`)
: `module:attribute` import paths of additional substitution rules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from .exceptions import ConfigurationError


MATH_ENVIRONMENTS = ["equation", "align", "gather", "multline", "flalign", "alignat"]
FLOAT_ENVIRONMENTS = ["figure", "table", "algorithm"]
THEOREM_ENVIRONMENTS = [
    "theorem",
    "lemma",
    "proposition",
    "condition",
    "condbis",
    "assumption",
    "remark",
    "definition",
    "corollary",
    "example",
    "thm",
    "prop",
]
IGNORED_ENVIRONMENTS = [
    "document",
    "proof",
    "itemize",
    "enumerate",
    "description",
    "tikzpicture",
]
DEFAULT_MARKDOWN_EXTENSIONS = ["tables", "sane_lists", "attr_list"]


def _normalise_names(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    names: list[str] = []
    for item in value:
        name = str(item).strip().rstrip("*")
        if name and name not in names:
            names.append(name)
    return names


class SplitterConfig(BaseModel):
    """Tunable limits and environment classes for the block splitter."""

    model_config = ConfigDict(extra="forbid")

    brace_lookahead: int = Field(default=2000, ge=0)
    math_lookahead: int = Field(default=2000, ge=0)
    environment_lookahead: int = Field(default=4000, ge=0)
    trap_line_threshold: int = Field(default=50, ge=1)
    major_environments: list[str] = Field(
        default_factory=lambda: [*MATH_ENVIRONMENTS, *FLOAT_ENVIRONMENTS, *THEOREM_ENVIRONMENTS]
    )
    float_environments: list[str] = Field(default_factory=lambda: list(FLOAT_ENVIRONMENTS))
    ignored_environments: list[str] = Field(default_factory=lambda: list(IGNORED_ENVIRONMENTS))

    @field_validator(
        "major_environments", "float_environments", "ignored_environments", mode="before"
    )
    @classmethod
    def _strip_stars(cls, value: Any) -> list[str]:
        return _normalise_names(value)

    def is_major(self, name: str) -> bool:
        """Return True when the environment forces a block boundary."""
        return name.rstrip("*") in self.major_environments

    def is_float(self, name: str) -> bool:
        """Return True when the environment also closes its block."""
        return name.rstrip("*") in self.float_environments

    def is_ignored(self, name: str) -> bool:
        """Return True when the environment is transparent to the splitter."""
        return name.rstrip("*") in self.ignored_environments


class PreviewConfig(BaseModel):
    """Top-level configuration for an incremental preview session."""

    model_config = ConfigDict(extra="forbid")

    splitter: SplitterConfig = Field(default_factory=SplitterConfig)
    resolve_max_depth: int = Field(default=15, ge=1)
    full_render_threshold: int = Field(default=50, ge=0)
    max_macro_expansion: int = Field(default=10000, ge=1)
    title_marker: str = "\\maketitle"
    block_class: str = "latex-block"
    markdown_extensions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MARKDOWN_EXTENSIONS)
    )
    extra_rules: list[str] = Field(default_factory=list)


def load_config(path: Path | str) -> PreviewConfig:
    """Load a YAML configuration file into a :class:`PreviewConfig`."""
    source = Path(path)
    try:
        payload = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Unable to read configuration '{source}': {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigurationError(
            f"Configuration '{source}' must contain a mapping, got {type(payload).__name__}."
        )

    section = payload.get("snaptex", payload)
    try:
        return PreviewConfig.model_validate(section)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration '{source}': {exc}") from exc


__all__ = [
    "DEFAULT_MARKDOWN_EXTENSIONS",
    "FLOAT_ENVIRONMENTS",
    "IGNORED_ENVIRONMENTS",
    "MATH_ENVIRONMENTS",
    "THEOREM_ENVIRONMENTS",
    "PreviewConfig",
    "SplitterConfig",
    "load_config",
]
