"""
Error kinds raised by the pipeline stages.

Every error carries the stage it happened in and a short cause tag so callers
can tell an environment problem (missing binary, service down) apart from a
content problem (no speech found). None of them are retried.
"""

from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base error for the audio translation pipeline."""

    default_cause = "failed"

    def __init__(self, message: str, *, stage=None, cause: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.cause = cause or self.default_cause

    def __str__(self) -> str:
        return self.message


class ValidationError(PipelineError):
    """Raised when required job fields are missing or unresolved."""

    default_cause = "missing_field"


class ConversionError(PipelineError):
    """Raised when input normalization fails."""

    default_cause = "tool_failed"


class AudioToolMissingError(ConversionError):
    """Raised when the audio tool binary cannot be executed at all."""

    default_cause = "tool_missing"


class TranscriptionError(PipelineError):
    """Raised when the transcription service fails or returns nothing usable."""

    default_cause = "service_error"


class TranslationError(PipelineError):
    """Raised when the translation worker reports an error or dies."""

    default_cause = "worker_error"


class SynthesisError(PipelineError):
    """Raised when a text-to-speech chunk cannot be fetched or written."""

    default_cause = "chunk_failed"

    def __init__(self, message: str, *, chunk_index: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.chunk_index = chunk_index


class PostProcessError(PipelineError):
    """Raised when the tempo adjustment fails."""

    default_cause = "tool_failed"


class StageTimeoutError(PipelineError):
    """Raised when a stage does not finish within its configured timeout."""

    default_cause = "timeout"


class ResourceCleanupError(PipelineError):
    """Raised when a temporary artifact cannot be removed. Never a job outcome."""

    default_cause = "cleanup_failed"
