"""FastAPI server exposing HTTP endpoints to launch audio translation jobs.

Run with:
uvicorn server.app:app --host 0.0.0.0 --port 8000

POST /translate
Content-Type: application/json
{
    "input_path": "/data/interview.opus",
    "source_language": "en",
    "target_language": "es",
    "output_dir": "/data/out",
    # optional
    "model": "small"
}

The server starts the job as a background task and responds immediately with
a 202 status and the job id. GET /translate/{job_id} reports the stage,
progress events and, once finished, the output path or the error message.
"""

from __future__ import annotations
import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, field_validator

from pipeline.config import PipelineConfig
from pipeline.controller import PipelineController
from pipeline.jobs import RecordingObserver, TranslationJob

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------
class TranslateRequest(BaseModel):
    input_path: str = Field(..., description="Absolute path of the source audio file")
    source_language: str = Field(..., description="Language id of the speech, e.g. 'en'")
    target_language: str = Field(..., description="Language id to translate into, e.g. 'es'")
    output_dir: str = Field(..., description="Directory that receives translation_<id>.<ext>")
    model: Optional[str] = Field(None, description="Transcription model size override")

    @field_validator("input_path", "source_language", "target_language", "output_dir")
    def _strip(cls, v):  # noqa: D401
        if isinstance(v, str):
            return v.strip()
        return v


class TranslateResponse(BaseModel):
    job_id: str
    status: str = "started"


class ProgressEventModel(BaseModel):
    type: str
    data: str


class JobStatusResponse(BaseModel):
    job_id: str
    stage: str
    done: bool
    events: List[ProgressEventModel] = []
    output_path: Optional[str] = None
    error: Optional[str] = None


class LanguageModel(BaseModel):
    id: str
    recognition_code: str
    translation_code: str


# ---------------------------------------------------------------------------
# Job registry so we can report on running and finished jobs
# ---------------------------------------------------------------------------
@dataclass
class JobRecord:
    job: TranslationJob
    observer: RecordingObserver
    task: Optional[asyncio.Task] = None


async def _run_job(controller: PipelineController, job: TranslationJob) -> None:
    """Run one job to its terminal state."""
    try:
        await controller.process(job)
    except Exception as exc:  # pragma: no cover
        logger.error("Translation job %s crashed: %s", job.id, exc)
    finally:
        logger.info("Translation job %s finished", job.id)


def create_app(controller: Optional[PipelineController] = None, retention_seconds: float = 3600.0) -> FastAPI:
    """Build the launcher. Finished jobs stay queryable for retention_seconds."""
    app = FastAPI(title="Audio Translation Pipeline API")
    app.state.controller = controller or PipelineController(PipelineConfig.from_env())
    jobs: Dict[str, JobRecord] = {}
    app.state.jobs = jobs

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    @app.get("/languages", response_model=List[LanguageModel])
    async def list_languages():
        languages = app.state.controller.languages
        return [
            LanguageModel(id=key, recognition_code=entry.recognition_code, translation_code=entry.translation_code)
            for key, entry in languages.items()
        ]

    @app.post("/translate", response_model=TranslateResponse, status_code=202)
    async def translate(request: TranslateRequest):
        ctl: PipelineController = app.state.controller
        for value in (request.source_language, request.target_language):
            if ctl.languages.resolve(value) is None:
                raise HTTPException(status_code=400, detail=f"Unsupported language: {value}")

        observer = RecordingObserver()
        job = TranslationJob(
            input_path=request.input_path,
            source_language=request.source_language,
            target_language=request.target_language,
            output_dir=request.output_dir,
            observer=observer,
            model=request.model,
            output_extension=ctl.config.output_extension,
        )
        record = JobRecord(job=job, observer=observer)
        record.task = asyncio.create_task(_run_job(ctl, job))
        jobs[job.id] = record

        def _cleanup(_t: asyncio.Task, job_id: str = job.id):
            record.task = None
            asyncio.get_running_loop().call_later(retention_seconds, jobs.pop, job_id, None)

        record.task.add_done_callback(_cleanup)

        logger.info("Started translation job %s", job.id)
        return TranslateResponse(job_id=job.id)

    @app.get("/translate/{job_id}", response_model=JobStatusResponse)
    async def job_status(job_id: str):
        record = jobs.get(job_id)
        if record is None:
            raise HTTPException(status_code=404, detail=f"Unknown job: {job_id}")
        observer = record.observer
        return JobStatusResponse(
            job_id=job_id,
            stage=record.job.stage.value,
            done=observer.finished,
            events=[ProgressEventModel(**event.to_dict()) for event in observer.progress],
            output_path=observer.output_path,
            error=observer.error,
        )

    return app


logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
app = create_app()
