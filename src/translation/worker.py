"""
Translation worker process management.

Each translation runs in a dedicated child process: spawn, send one request,
wait for exactly one response, terminate. The model's memory footprint (and
any crash while loading it) stays out of the controller process.
"""

import asyncio
import logging
import multiprocessing
import queue
import signal
from dataclasses import dataclass
from typing import Callable, Optional

try:
    import resource
except ImportError:  # not available on Windows
    resource = None

from pipeline.errors import TranslationError
from pipeline.jobs import Stage

from .marian import MarianTranslator

logger = logging.getLogger(__name__)

TranslateFn = Callable[[str, str, str], str]


@dataclass
class TranslationRequest:
    """Request sent to the worker."""
    text: str
    source_code: str
    target_code: str


@dataclass
class TranslationResponse:
    """Single response sent back by the worker."""
    status: str  # "completed" or "error"
    output: str  # translated text, or the error message
    resource_exhausted: bool = False


def _apply_memory_limit(limit_bytes: int) -> None:
    if not limit_bytes or resource is None:
        return
    _soft, hard = resource.getrlimit(resource.RLIMIT_AS)
    if hard != resource.RLIM_INFINITY:
        limit_bytes = min(limit_bytes, hard)
    resource.setrlimit(resource.RLIMIT_AS, (limit_bytes, hard))


def translation_worker(translate_fn: TranslateFn, memory_limit_bytes: int, request_queue, result_queue):
    """
    Worker function for the translation process.

    Args:
        translate_fn: Picklable callable (text, source_code, target_code) -> text
        memory_limit_bytes: Address-space ceiling for this process, 0 for none
        request_queue: Multiprocessing queue carrying the single request
        result_queue: Multiprocessing queue for the single response
    """
    _apply_memory_limit(memory_limit_bytes)
    request = request_queue.get()
    try:
        output = translate_fn(request.text, request.source_code, request.target_code)
        result_queue.put(TranslationResponse(status="completed", output=output))
    except MemoryError as e:
        result_queue.put(TranslationResponse(
            status="error",
            output=f"Translation worker ran out of memory: {e}",
            resource_exhausted=True,
        ))
    except Exception as e:
        result_queue.put(TranslationResponse(status="error", output=f"{type(e).__name__}: {e}"))


class TranslationWorker:
    """Runs one translation per child process."""

    def __init__(
        self,
        translate_fn: Optional[TranslateFn] = None,
        memory_limit_mb: int = 8192,
        start_method: str = "spawn",
        poll_interval: float = 0.5,
    ):
        """
        Args:
            translate_fn: Picklable translation callable run inside the child;
                defaults to a MarianTranslator
            memory_limit_mb: Memory ceiling applied in the child (0 disables)
            start_method: multiprocessing start method
            poll_interval: How often to check the child for an abnormal exit
        """
        self.translate_fn = translate_fn or MarianTranslator()
        self.memory_limit_mb = memory_limit_mb
        self.start_method = start_method
        self.poll_interval = poll_interval

    async def translate(self, text: str, source_code: str, target_code: str) -> str:
        """
        Translate text in a fresh worker process.

        Raises:
            TranslationError: cause is worker_error, worker_crashed or
                resource_exhausted
        """
        ctx = multiprocessing.get_context(self.start_method)
        request_queue = ctx.Queue()
        result_queue = ctx.Queue()
        process = ctx.Process(
            target=translation_worker,
            args=(self.translate_fn, self.memory_limit_mb * 1024 * 1024, request_queue, result_queue),
            daemon=True
        )

        logger.info(f"Starting translation worker ({source_code} -> {target_code})")
        process.start()
        try:
            request_queue.put(TranslationRequest(text=text, source_code=source_code, target_code=target_code))
            response = await self._wait_for_response(process, result_queue)
        finally:
            await self._terminate(process)
            for q in (request_queue, result_queue):
                q.close()
                q.cancel_join_thread()

        if response.status == "completed":
            logger.info("Translation worker completed")
            return response.output

        cause = "resource_exhausted" if response.resource_exhausted else "worker_error"
        raise TranslationError(f"Translation worker error: {response.output}", stage=Stage.TRANSLATING, cause=cause)

    async def _wait_for_response(self, process, result_queue) -> TranslationResponse:
        while True:
            try:
                return await asyncio.to_thread(result_queue.get, timeout=self.poll_interval)
            except queue.Empty:
                pass
            if not process.is_alive():
                # The response may still be in flight from the child's feeder thread
                try:
                    return await asyncio.to_thread(result_queue.get, timeout=self.poll_interval)
                except queue.Empty:
                    raise self._abnormal_exit(process.exitcode)

    def _abnormal_exit(self, exitcode: Optional[int]) -> TranslationError:
        if exitcode == -signal.SIGKILL:
            logger.error("Translation worker was killed, likely out of memory")
            return TranslationError(
                f"Translation worker was killed (exit code {exitcode}), likely out of memory",
                stage=Stage.TRANSLATING,
                cause="resource_exhausted",
            )
        logger.error(f"Translation worker exited with code {exitcode} without a response")
        return TranslationError(
            f"Translation worker terminated unexpectedly (exit code {exitcode})",
            stage=Stage.TRANSLATING,
            cause="worker_crashed",
        )

    async def _terminate(self, process) -> None:
        if process.is_alive():
            process.terminate()
        await asyncio.to_thread(process.join, 5.0)
        if process.is_alive():
            process.kill()
            await asyncio.to_thread(process.join)
        process.close()
        logger.debug("Translation worker stopped")
