"""
Tests for chunk splitting, ordered reassembly and atomic output writes.
"""
import asyncio
import os
import random
from urllib.parse import parse_qs, urlparse

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from pipeline.errors import SynthesisError
from pipeline.temp_files import TempResourceManager
from synthesis.tts import SpeechSynthesizer, build_chunks, split_text


def test_split_text_respects_limit_and_word_boundaries():
    text = "the quick brown fox jumps over the lazy dog"
    chunks = split_text(text, max_chars=10)

    assert all(len(c) <= 10 for c in chunks)
    assert " ".join(chunks) == text
    assert chunks[0] == "the quick"


def test_split_text_hard_splits_long_words():
    assert split_text("abcdefghij xy", max_chars=4) == ["abcd", "efgh", "ij", "xy"]


def test_split_text_prefers_sentence_ends():
    text = "Hola amigo. Como estas hoy"
    assert split_text(text, max_chars=20) == ["Hola amigo.", "Como estas hoy"]


def test_split_text_collapses_whitespace_and_handles_empty():
    assert split_text("  hola \n\n mundo  ", max_chars=200) == ["hola mundo"]
    assert split_text("   ", max_chars=200) == []


def test_build_chunks_produces_ordered_urls():
    chunks = build_chunks("hola mundo", "es", tts_url="http://tts.example/translate_tts", max_chars=5)

    assert [c.index for c in chunks] == [0, 1]
    assert [c.text for c in chunks] == ["hola", "mundo"]
    query = parse_qs(urlparse(chunks[1].url).query)
    assert query["q"] == ["mundo"]
    assert query["tl"] == ["es"]
    assert query["idx"] == ["1"]
    assert query["total"] == ["2"]
    assert query["textlen"] == ["5"]
    assert query["client"] == ["tw-ob"]


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(5))
async def test_reassembly_follows_chunk_order_not_completion_order(seed):
    rng = random.Random(seed)
    text = " ".join(f"w{i:02d}" for i in range(12))
    delays = {}

    async def fetcher(session, chunk):
        delays.setdefault(chunk.index, rng.random() * 0.02)
        await asyncio.sleep(delays[chunk.index])
        return f"[{chunk.index}:{chunk.text}]".encode()

    synthesizer = SpeechSynthesizer(tts_url="http://tts.invalid", max_chunk_chars=4, concurrency=4, fetcher=fetcher)
    chunks = synthesizer.plan(text, "en")
    buffers = await synthesizer.fetch_all(chunks)

    assert b"".join(buffers) == b"".join(f"[{c.index}:{c.text}]".encode() for c in chunks)


@pytest.mark.asyncio
async def test_synthesize_writes_output_atomically(tmp_path):
    async def fetcher(session, chunk):
        return chunk.text.encode() + b";"

    temp = TempResourceManager("job1", str(tmp_path))
    output_path = str(tmp_path / "translation_job1.mp3")
    synthesizer = SpeechSynthesizer(tts_url="http://tts.invalid", max_chunk_chars=5, fetcher=fetcher)

    await synthesizer.synthesize("hola mundo", "es", output_path, temp)

    with open(output_path, "rb") as f:
        assert f.read() == b"hola;mundo;"
    assert temp.artifacts == []
    assert os.listdir(tmp_path) == ["translation_job1.mp3"]


@pytest.mark.asyncio
async def test_failed_chunk_aborts_without_output(tmp_path):
    async def fetcher(session, chunk):
        if chunk.index == 2:
            raise ConnectionError("boom")
        await asyncio.sleep(0.01)
        return b"x"

    temp = TempResourceManager("job2", str(tmp_path))
    output_path = str(tmp_path / "translation_job2.mp3")
    synthesizer = SpeechSynthesizer(tts_url="http://tts.invalid", max_chunk_chars=2, fetcher=fetcher)

    with pytest.raises(SynthesisError) as excinfo:
        await synthesizer.synthesize("aa bb cc dd", "en", output_path, temp)

    assert excinfo.value.chunk_index == 2
    assert "chunk 3/4" in str(excinfo.value)
    assert not os.path.exists(output_path)
    assert os.listdir(tmp_path) == []


@pytest.mark.asyncio
async def test_empty_text_is_rejected(tmp_path):
    synthesizer = SpeechSynthesizer(tts_url="http://tts.invalid")
    with pytest.raises(SynthesisError) as excinfo:
        await synthesizer.synthesize("   ", "en", str(tmp_path / "out.mp3"), TempResourceManager("j", str(tmp_path)))
    assert excinfo.value.cause == "empty_text"


@pytest.mark.asyncio
async def test_default_fetcher_against_local_provider(tmp_path):
    async def handle(request: web.Request) -> web.Response:
        idx = int(request.query["idx"])
        if request.query["q"] == "fail":
            return web.Response(status=503)
        await asyncio.sleep(0.01 * (3 - idx))  # later chunks answer first
        return web.Response(body=f"<{request.query['q']}>".encode(), content_type="audio/mpeg")

    app = web.Application()
    app.router.add_get("/translate_tts", handle)
    async with TestServer(app) as server:
        url = str(server.make_url("/translate_tts"))
        synthesizer = SpeechSynthesizer(tts_url=url, max_chunk_chars=3)

        buffers = await synthesizer.fetch_all(synthesizer.plan("uno dos tre", "es"))
        assert b"".join(buffers) == b"<uno><dos><tre>"

        failing = SpeechSynthesizer(tts_url=url, max_chunk_chars=4)
        with pytest.raises(SynthesisError) as excinfo:
            await failing.fetch_all(failing.plan("ok fail", "es"))
        assert excinfo.value.chunk_index == 1
