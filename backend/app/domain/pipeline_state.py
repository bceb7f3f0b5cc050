import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from app.core.errors import CompositingError
from app.domain.models import GenerationMode


class PipelineState(str, Enum):
    IDLE = "idle"
    LOADING_ASSETS = "loading_assets"
    EXTRACTING_MATTE = "extracting_matte"
    SYNTHESIZING_SHADOW = "synthesizing_shadow"
    COMPOSITING = "compositing"
    RENDERING_TEXT = "rendering_text"
    ENCODED = "encoded"
    FAILED = "failed"


S = PipelineState

_PRECISION: Dict[PipelineState, FrozenSet[PipelineState]] = {
    S.IDLE: frozenset({S.LOADING_ASSETS}),
    S.LOADING_ASSETS: frozenset({S.EXTRACTING_MATTE}),
    S.EXTRACTING_MATTE: frozenset({S.SYNTHESIZING_SHADOW}),
    S.SYNTHESIZING_SHADOW: frozenset({S.COMPOSITING}),
    S.COMPOSITING: frozenset({S.RENDERING_TEXT}),
    S.RENDERING_TEXT: frozenset({S.ENCODED}),
}

_CREATIVE: Dict[PipelineState, FrozenSet[PipelineState]] = {
    S.IDLE: frozenset({S.LOADING_ASSETS}),
    S.LOADING_ASSETS: frozenset({S.COMPOSITING}),
    S.COMPOSITING: frozenset({S.RENDERING_TEXT}),
    S.RENDERING_TEXT: frozenset({S.ENCODED}),
}

TERMINAL = frozenset({S.ENCODED, S.FAILED})


@dataclass
class PipelineRun:
    """State of one synthesize() invocation. Never shared between invocations."""

    mode: GenerationMode
    trace_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: PipelineState = S.IDLE
    started_at: float = field(default_factory=lambda: time.time())
    finished_at: Optional[float] = None
    error: Optional[str] = None
    history: List[Tuple[PipelineState, float]] = field(default_factory=list)

    def __post_init__(self):
        self.history.append((self.state, self.started_at))

    @property
    def states(self) -> List[str]:
        return [s.value for s, _ in self.history]

    def advance(self, target: PipelineState) -> None:
        table = _PRECISION if self.mode is GenerationMode.PRECISION else _CREATIVE
        allowed = table.get(self.state, frozenset())
        if target not in allowed:
            raise CompositingError(
                f"illegal pipeline transition {self.state.value} -> {target.value} ({self.mode.value})"
            )
        self._enter(target)
        if target is S.ENCODED:
            self.finished_at = time.time()

    def fail(self, error: str) -> None:
        if self.state in TERMINAL:
            return
        self.error = error[:500]
        self._enter(S.FAILED)
        self.finished_at = time.time()

    def _enter(self, target: PipelineState) -> None:
        self.state = target
        self.history.append((target, time.time()))
