"""
Chunked remote text-to-speech.

Synthesis is two separate steps: a pure split step that turns the text into
an ordered list of chunk requests, and a fetch step that downloads every
chunk (concurrently) and reassembles the audio by chunk index.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional
from urllib.parse import urlencode

import aiohttp

from pipeline.errors import SynthesisError
from pipeline.jobs import Stage
from pipeline.temp_files import TempResourceManager

logger = logging.getLogger(__name__)

DEFAULT_TTS_URL = "https://translate.google.com/translate_tts"
USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"


@dataclass(frozen=True)
class SpeechChunk:
    """One provider request: a slice of text and the URL that renders it."""
    index: int
    text: str
    url: str


ChunkFetcher = Callable[[aiohttp.ClientSession, SpeechChunk], Awaitable[bytes]]
SENTENCE_ENDS = (". ", "! ", "? ", "; ")


def split_text(text: str, max_chars: int = 200) -> List[str]:
    """
    Split text into chunks of at most max_chars characters.

    Prefers the last sentence end that fits, then the last whitespace; a
    single word longer than the limit is cut hard. Whitespace runs are
    collapsed first.
    """
    if max_chars <= 0:
        raise ValueError("max_chars must be positive")
    remaining = " ".join(text.split())
    chunks: List[str] = []
    while len(remaining) > max_chars:
        window = remaining[:max_chars + 1]
        cut = max(window.rfind(mark) for mark in SENTENCE_ENDS) + 1
        if cut <= 0:
            cut = window.rfind(" ")
        if cut <= 0:
            cut = max_chars
        chunks.append(remaining[:cut].strip())
        remaining = remaining[cut:].strip()
    if remaining:
        chunks.append(remaining)
    return chunks


def build_chunks(
    text: str,
    language: str,
    tts_url: str = DEFAULT_TTS_URL,
    max_chars: int = 200,
    slow: bool = False,
) -> List[SpeechChunk]:
    """Produce the ordered chunk requests for text, before any network call."""
    pieces = split_text(text, max_chars)
    chunks = []
    for idx, piece in enumerate(pieces):
        query = urlencode({
            "ie": "UTF-8",
            "q": piece,
            "tl": language,
            "total": len(pieces),
            "idx": idx,
            "textlen": len(piece),
            "client": "tw-ob",
            "prev": "input",
            "ttsspeed": 0.24 if slow else 1,
        })
        chunks.append(SpeechChunk(index=idx, text=piece, url=f"{tts_url}?{query}"))
    return chunks


async def fetch_chunk(session: aiohttp.ClientSession, chunk: SpeechChunk) -> bytes:
    """Download the audio for one chunk."""
    async with session.get(chunk.url) as response:
        response.raise_for_status()
        return await response.read()


class SpeechSynthesizer:
    """Converts text to one audio file via a chunked remote TTS provider."""

    def __init__(
        self,
        tts_url: str = DEFAULT_TTS_URL,
        max_chunk_chars: int = 200,
        concurrency: int = 4,
        slow: bool = False,
        request_timeout: float = 30.0,
        fetcher: Optional[ChunkFetcher] = None,
    ):
        """
        Args:
            tts_url: Provider endpoint
            max_chunk_chars: Provider request-size limit in characters
            concurrency: Maximum chunk downloads in flight
            slow: Request the provider's slow speaking rate
            request_timeout: Per-chunk request timeout in seconds
            fetcher: Replacement for fetch_chunk (tests)
        """
        self.tts_url = tts_url
        self.max_chunk_chars = max_chunk_chars
        self.concurrency = max(1, concurrency)
        self.slow = slow
        self.request_timeout = request_timeout
        self.fetcher = fetcher or fetch_chunk

    def plan(self, text: str, language: str) -> List[SpeechChunk]:
        return build_chunks(text, language, self.tts_url, self.max_chunk_chars, self.slow)

    async def fetch_all(self, chunks: List[SpeechChunk]) -> List[bytes]:
        """
        Fetch every chunk concurrently and return the buffers in chunk order.

        Raises:
            SynthesisError: naming the first chunk that failed; all other
                in-flight downloads are cancelled
        """
        semaphore = asyncio.Semaphore(self.concurrency)
        buffers: List[Optional[bytes]] = [None] * len(chunks)
        total = len(chunks)

        async def _fetch(session: aiohttp.ClientSession, chunk: SpeechChunk) -> None:
            async with semaphore:
                try:
                    data = await self.fetcher(session, chunk)
                except Exception as e:
                    raise SynthesisError(
                        f"Failed to download audio chunk {chunk.index + 1}/{total}: {e}",
                        chunk_index=chunk.index,
                        stage=Stage.SYNTHESIZING,
                    ) from e
            if not data:
                raise SynthesisError(
                    f"Audio chunk {chunk.index + 1}/{total} was empty",
                    chunk_index=chunk.index,
                    stage=Stage.SYNTHESIZING,
                )
            buffers[chunk.index] = data
            logger.debug(f"Fetched chunk {chunk.index + 1}/{total} ({len(data)} bytes)")

        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        async with aiohttp.ClientSession(timeout=timeout, headers={"User-Agent": USER_AGENT}) as session:
            tasks = [asyncio.create_task(_fetch(session, chunk)) for chunk in chunks]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        return buffers

    async def synthesize(self, text: str, language: str, output_path: str, temp: TempResourceManager) -> str:
        """
        Render text to output_path. The audio is written to a sibling temp
        file and moved into place, so output_path never holds a partial write.
        """
        chunks = self.plan(text, language)
        if not chunks:
            raise SynthesisError("Nothing to synthesize: translated text is empty", stage=Stage.SYNTHESIZING, cause="empty_text")
        logger.info(f"Synthesizing {len(chunks)} chunk(s) in {language}")

        buffers = await self.fetch_all(chunks)
        directory = os.path.dirname(output_path)
        _, ext = os.path.splitext(output_path)
        part_path = temp.allocate(ext, directory=directory, prefix=".part_")
        try:
            with open(part_path, "wb") as f:
                for data in buffers:
                    f.write(data)
            temp.promote(part_path, output_path)
        except OSError as e:
            temp.release(part_path)
            raise SynthesisError(
                f"Could not write synthesized audio to {output_path}: {e}",
                stage=Stage.SYNTHESIZING,
                cause="write_failed",
            ) from e
        logger.info(f"Wrote synthesized audio to {output_path}")
        return output_path
