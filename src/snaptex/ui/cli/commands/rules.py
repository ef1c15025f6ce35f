"""Implementation of the ``snaptex rules`` command."""

from __future__ import annotations

from .._options import ConfigOption, RuleOption
from ..presenter import present_rule_descriptions
from ..state import get_cli_state
from ..utils import build_config
from .render import build_renderer


def rules(
    config_path: ConfigOption = None,
    extra_rules: RuleOption = None,
) -> None:
    """Display the ordered list of registered substitution rules."""
    renderer = build_renderer(build_config(config_path, rules=extra_rules))
    present_rule_descriptions(get_cli_state(), renderer.engine.registry.describe())


__all__ = ["rules"]
