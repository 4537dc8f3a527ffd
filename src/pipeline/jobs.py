"""
Job model, stage state machine and observer events.
"""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Protocol


class Stage(str, Enum):
    CREATED = "created"
    CONVERTING = "converting"
    TRANSCRIBING = "transcribing"
    TRANSLATING = "translating"
    SYNTHESIZING = "synthesizing"
    POST_PROCESSING = "post_processing"
    COMPLETED = "completed"
    FAILED = "failed"


# Linear order; FAILED is reachable from any non-terminal stage.
STAGE_ORDER = [
    Stage.CREATED,
    Stage.CONVERTING,
    Stage.TRANSCRIBING,
    Stage.TRANSLATING,
    Stage.SYNTHESIZING,
    Stage.POST_PROCESSING,
    Stage.COMPLETED,
]


@dataclass(frozen=True)
class ProgressEvent:
    """Intermediate text emitted after transcription and after translation."""
    type: Literal["transcription", "translation"]
    data: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "data": self.data}


class JobObserver(Protocol):
    """Write-only sink for job events."""

    def on_progress(self, event: ProgressEvent) -> None: ...

    def on_complete(self, output_path: str) -> None: ...

    def on_error(self, message: str) -> None: ...


@dataclass
class TranslationJob:
    """One request to translate one audio file between a language pair."""

    input_path: str
    source_language: str
    target_language: str
    output_dir: str
    observer: Optional[JobObserver] = None
    model: Optional[str] = None
    output_extension: str = "mp3"
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    stage: Stage = Stage.CREATED

    def __post_init__(self):
        if self.input_path:
            object.__setattr__(self, "input_path", os.path.abspath(self.input_path))

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "input_path" and "input_path" in self.__dict__:
            raise AttributeError("input_path is immutable once set")
        super().__setattr__(name, value)

    @property
    def output_name(self) -> str:
        return f"translation_{self.id}"

    @property
    def output_path(self) -> str:
        return os.path.abspath(os.path.join(self.output_dir, f"{self.output_name}.{self.output_extension}"))

    def advance(self, stage: Stage) -> None:
        """Move to the next stage; stages are never re-entered or skipped."""
        if self.stage in (Stage.COMPLETED, Stage.FAILED):
            raise RuntimeError(f"Job {self.id} already finished ({self.stage.value})")
        if stage is Stage.FAILED:
            self.stage = stage
            return
        current = STAGE_ORDER.index(self.stage)
        if STAGE_ORDER.index(stage) != current + 1:
            raise RuntimeError(f"Illegal transition {self.stage.value} -> {stage.value} for job {self.id}")
        self.stage = stage


@dataclass
class JobResult:
    """Outcome of PipelineController.process."""
    job_id: str
    stage: Stage
    transcription: Optional[str] = None
    translation: Optional[str] = None
    output_path: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.stage is Stage.COMPLETED


class RecordingObserver:
    """Observer that keeps every event in memory, in arrival order."""

    def __init__(self):
        self.progress: List[ProgressEvent] = []
        self.output_path: Optional[str] = None
        self.error: Optional[str] = None
        self.terminal_events = 0

    def on_progress(self, event: ProgressEvent) -> None:
        self.progress.append(event)

    def on_complete(self, output_path: str) -> None:
        self.output_path = output_path
        self.terminal_events += 1

    def on_error(self, message: str) -> None:
        self.error = message
        self.terminal_events += 1

    @property
    def finished(self) -> bool:
        return self.terminal_events > 0
