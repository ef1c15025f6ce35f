from __future__ import annotations

from collections.abc import Mapping
import pathlib
import sys
from typing import Any

# ruff: noqa: E402
import pytest


ROOT = pathlib.Path(__file__).resolve().parents[1] / "src"
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from snaptex.core.config import PreviewConfig
from snaptex.core.context import RuleContext
from snaptex.core.protection import ProtectionRegistry
from snaptex.core.renderer import IncrementalRenderer


def fake_math(tex: str, display: bool, macros: Mapping[str, str]) -> str:
    tag = "math-display" if display else "math-inline"
    return f'<span class="{tag}">{tex}</span>'


class RecordingEmitter:
    """Emitter collecting every diagnostic for later assertions."""

    debug_enabled = False

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.errors: list[tuple[str, BaseException | None]] = []
        self.events: list[tuple[str, dict[str, Any]]] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self.errors.append((message, exc))

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        self.events.append((name, dict(payload)))

    def named(self, name: str) -> list[dict[str, Any]]:
        return [payload for event, payload in self.events if event == name]


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def rule_context() -> RuleContext:
    return RuleContext(protection=ProtectionRegistry(), math_renderer=fake_math)


@pytest.fixture
def make_renderer(emitter: RecordingEmitter):
    def _factory(config: PreviewConfig | None = None, **options: Any) -> IncrementalRenderer:
        options.setdefault("math_renderer", fake_math)
        options.setdefault("emitter", emitter)
        options.setdefault("load_entry_points", False)
        return IncrementalRenderer(config, **options)

    return _factory
