import os

import pytest

from audio.processing import AudioFormatConverter, AudioPostProcessor
from pipeline.config import PipelineConfig
from pipeline.controller import PipelineController
from pipeline.jobs import RecordingObserver, TranslationJob
from synthesis.tts import SpeechSynthesizer


class FakeAudioTool:
    """AudioTool that writes deterministic bytes instead of running ffmpeg."""

    def __init__(self, transcode_error=None, tempo_error=None):
        self.transcode_error = transcode_error
        self.tempo_error = tempo_error
        self.calls = []

    async def transcode(self, input_file, output_file, sample_rate=16000, channels=1):
        self.calls.append(("transcode", input_file, output_file))
        if self.transcode_error:
            raise self.transcode_error
        with open(input_file, "rb") as src, open(output_file, "wb") as dst:
            dst.write(b"WAV:" + src.read())

    async def change_tempo(self, input_file, output_file, factor):
        self.calls.append(("change_tempo", input_file, output_file))
        if self.tempo_error:
            with open(output_file, "wb") as f:
                f.write(b"partial")
            raise self.tempo_error
        with open(input_file, "rb") as src, open(output_file, "wb") as dst:
            dst.write(src.read() + f"|x{factor:g}".encode())


class FakeTranscriber:
    def __init__(self, text="hello world", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def transcribe(self, audio_path, recognition_code, model=None):
        self.calls.append((audio_path, recognition_code, model))
        assert os.path.exists(audio_path)
        if self.error:
            raise self.error
        return self.text


class FakeTranslator:
    def __init__(self, text="hola mundo", error=None):
        self.text = text
        self.error = error
        self.calls = []

    async def translate(self, text, source_code, target_code):
        self.calls.append((text, source_code, target_code))
        if self.error:
            raise self.error
        return self.text


def chunk_fetcher(pieces):
    """Fetcher returning pieces[chunk.index] for each chunk."""
    calls = []

    async def _fetch(session, chunk):
        calls.append(chunk.index)
        return pieces[chunk.index]

    _fetch.calls = calls
    return _fetch


@pytest.fixture
def temp_dir(tmp_path):
    path = tmp_path / "tmp"
    path.mkdir()
    return str(path)


@pytest.fixture
def output_dir(tmp_path):
    return str(tmp_path / "out")


@pytest.fixture
def sample_wav(tmp_path):
    path = tmp_path / "sample.wav"
    path.write_bytes(b"RIFF-sample-audio")
    return str(path)


@pytest.fixture
def config(temp_dir):
    return PipelineConfig(temp_dir=temp_dir, tts_max_chunk_chars=5, tempo=1.25)


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def make_controller(config):
    """Build a controller from fakes; keyword overrides replace single collaborators."""

    def _make(tool=None, transcriber=None, translator=None, fetcher=None, **kwargs):
        tool = tool or FakeAudioTool()
        synthesizer = SpeechSynthesizer(
            tts_url="http://tts.invalid/translate_tts",
            max_chunk_chars=config.tts_max_chunk_chars,
            fetcher=fetcher or chunk_fetcher([b"hola ", b"mundo"]),
        )
        controller = PipelineController(
            config,
            converter=AudioFormatConverter(tool),
            transcriber=transcriber or FakeTranscriber(),
            translator=translator or FakeTranslator(),
            synthesizer=synthesizer,
            post_processor=AudioPostProcessor(tool, config.tempo),
            **kwargs,
        )
        return controller

    return _make


@pytest.fixture
def make_job(sample_wav, output_dir, observer):
    def _make(**overrides):
        fields = dict(
            input_path=sample_wav,
            source_language="en",
            target_language="es",
            output_dir=output_dir,
            observer=observer,
        )
        fields.update(overrides)
        return TranslationJob(**fields)

    return _make
