"""
Pipeline controller: convert -> transcribe -> translate -> synthesize -> post-process.

One job runs as a strict sequence of stages, each awaiting the previous
stage's output. The first failure ends the job. Exactly one terminal event
(completion or error) reaches the observer, and every temp artifact the job
created is removed before process() returns.
"""

import asyncio
import logging
import os
from typing import Any, Awaitable, Callable, Optional, Tuple

from audio.ffmpeg_tool import FFmpegTool
from audio.processing import AudioFormatConverter, AudioPostProcessor
from synthesis.tts import SpeechSynthesizer
from transcription.client import TranscriptionClient
from translation.marian import MarianTranslator
from translation.worker import TranslationWorker

from .config import PipelineConfig
from .errors import PipelineError, StageTimeoutError, ValidationError
from .jobs import JobResult, ProgressEvent, Stage, TranslationJob
from .languages import LanguageEntry, LanguageRegistry
from .temp_files import TempResourceManager

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("input_path", "source_language", "target_language", "output_dir")


class PipelineController:
    """Runs translation jobs. Collaborators default to the production ones built from config."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        languages: Optional[LanguageRegistry] = None,
        converter: Optional[AudioFormatConverter] = None,
        transcriber: Optional[TranscriptionClient] = None,
        translator: Optional[TranslationWorker] = None,
        synthesizer: Optional[SpeechSynthesizer] = None,
        post_processor: Optional[AudioPostProcessor] = None,
    ):
        cfg = config or PipelineConfig()
        self.config = cfg
        if languages is None:
            languages = LanguageRegistry.from_file(cfg.languages_file) if cfg.languages_file else LanguageRegistry()
        self.languages = languages

        tool = FFmpegTool(cfg.ffmpeg_binary)
        self.converter = converter or AudioFormatConverter(tool, cfg.audio_sample_rate, cfg.audio_channels)
        self.transcriber = transcriber or TranscriptionClient(cfg.transcription_url, cfg.transcription_connect_timeout)
        self.translator = translator or TranslationWorker(
            translate_fn=MarianTranslator(cfg.translation_model),
            memory_limit_mb=cfg.translation_memory_limit_mb,
            start_method=cfg.worker_start_method,
        )
        self.synthesizer = synthesizer or SpeechSynthesizer(
            tts_url=cfg.tts_url,
            max_chunk_chars=cfg.tts_max_chunk_chars,
            concurrency=cfg.tts_concurrency,
            slow=cfg.tts_slow,
        )
        self.post_processor = post_processor or AudioPostProcessor(tool, cfg.tempo)

    def validate(self, job: TranslationJob) -> Tuple[LanguageEntry, LanguageEntry]:
        """Check required fields and resolve both languages, before any stage runs."""
        missing = [name for name in REQUIRED_FIELDS if not getattr(job, name, None)]
        if missing:
            raise ValidationError(f"Missing required job fields: {', '.join(missing)}", stage=Stage.CREATED)

        source = self.languages.resolve(job.source_language)
        target = self.languages.resolve(job.target_language)
        for name, value, entry in (("source", job.source_language, source), ("target", job.target_language, target)):
            if entry is None:
                raise ValidationError(f"Unsupported {name} language: {value}", stage=Stage.CREATED, cause="unknown_language")

        if not os.path.isfile(job.input_path):
            raise ValidationError(f"Input file not found: {job.input_path}", stage=Stage.CREATED, cause="input_not_found")
        return source, target

    async def process(self, job: TranslationJob) -> JobResult:
        """
        Run every stage of job and report the outcome to its observer.

        Raises:
            ValidationError: only when the job has no observer or was already
                processed; every other failure is reported as the error event
        """
        if job.observer is None:
            raise ValidationError("Missing required job fields: observer", stage=Stage.CREATED)
        if job.stage is not Stage.CREATED:
            raise ValidationError(f"Job {job.id} was already processed ({job.stage.value})", stage=job.stage)

        logger.info(f"Starting job {job.id} for {job.input_path} ({job.source_language} -> {job.target_language})")
        result = JobResult(job_id=job.id, stage=job.stage)
        temp = TempResourceManager(job.id, self.config.temp_dir)
        try:
            error: Optional[PipelineError] = None
            try:
                source, target = self.validate(job)
                await self._run_stages(job, source, target, temp, result)
            except PipelineError as e:
                error = e
            except Exception as e:
                logger.exception(f"Job {job.id} failed unexpectedly during {job.stage.value}")
                error = PipelineError(f"Unexpected error during {job.stage.value}: {e}", stage=job.stage, cause="unexpected")

            if error is None:
                job.advance(Stage.COMPLETED)
                result.output_path = job.output_path
                logger.info(f"Job {job.id} completed: {job.output_path}")
                self._emit_terminal(job.observer.on_complete, job.output_path)
            else:
                if error.stage is None:
                    error.stage = job.stage
                job.advance(Stage.FAILED)
                result.error = error
                logger.error(f"Job {job.id} failed in {error.stage.value} ({error.cause}): {error}")
                self._emit_terminal(job.observer.on_error, str(error))
        finally:
            temp.cleanup()

        result.stage = job.stage
        return result

    async def _run_stages(
        self,
        job: TranslationJob,
        source: LanguageEntry,
        target: LanguageEntry,
        temp: TempResourceManager,
        result: JobResult,
    ) -> None:
        cfg = self.config
        os.makedirs(job.output_dir, exist_ok=True)

        wav_path = await self._stage(job, Stage.CONVERTING, cfg.conversion_timeout,
                                     self.converter.convert, job.input_path, temp)

        text = await self._stage(job, Stage.TRANSCRIBING, cfg.transcription_timeout,
                                 self.transcriber.transcribe, wav_path, source.recognition_code,
                                 job.model or cfg.default_model)
        temp.release(wav_path)
        result.transcription = text
        job.observer.on_progress(ProgressEvent(type="transcription", data=text))

        # Identical translation codes still go through the worker so every
        # language pair follows the same path.
        translated = await self._stage(job, Stage.TRANSLATING, cfg.translation_timeout,
                                       self.translator.translate, text, source.translation_code,
                                       target.translation_code)
        result.translation = translated
        job.observer.on_progress(ProgressEvent(type="translation", data=translated))

        await self._stage(job, Stage.SYNTHESIZING, cfg.synthesis_timeout,
                          self.synthesizer.synthesize, translated, target.translation_code, job.output_path, temp)

        await self._stage(job, Stage.POST_PROCESSING, cfg.post_process_timeout,
                          self.post_processor.apply_tempo, job.output_path, temp)

    async def _stage(self, job: TranslationJob, stage: Stage, timeout: float,
                     fn: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        job.advance(stage)
        logger.info(f"Job {job.id}: {stage.value}")
        try:
            return await asyncio.wait_for(fn(*args), timeout=timeout if timeout and timeout > 0 else None)
        except asyncio.TimeoutError as e:
            raise StageTimeoutError(f"{stage.value} did not finish within {timeout:g}s", stage=stage) from e
        except PipelineError as e:
            if e.stage is None:
                e.stage = stage
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in {stage.value}")
            raise PipelineError(f"Unexpected error during {stage.value}: {e}", stage=stage, cause="unexpected") from e

    def _emit_terminal(self, callback: Callable[[str], None], payload: str) -> None:
        # The outcome is already decided; an observer failure must not produce a second terminal event.
        try:
            callback(payload)
        except Exception:
            logger.exception("Observer failed to handle terminal event")
