"""
Tests for the job model, language table and temp artifact tracking.
"""
import json
import os
from unittest.mock import patch

import pytest

from pipeline.config import PipelineConfig
from pipeline.errors import ResourceCleanupError
from pipeline.jobs import Stage, TranslationJob
from pipeline.languages import DEFAULT_LANGUAGES, LanguageEntry, LanguageRegistry
from pipeline.temp_files import TempResourceManager


def test_job_ids_and_output_paths_are_unique(tmp_path):
    jobs = [TranslationJob("in.wav", "en", "es", str(tmp_path)) for _ in range(50)]

    assert len({job.id for job in jobs}) == 50
    assert jobs[0].output_path == os.path.join(str(tmp_path), f"translation_{jobs[0].id}.mp3")
    assert os.path.isabs(jobs[0].input_path)


def test_input_path_is_immutable(tmp_path):
    job = TranslationJob("in.wav", "en", "es", str(tmp_path))
    with pytest.raises(AttributeError):
        job.input_path = "other.wav"


def test_stages_advance_linearly():
    job = TranslationJob("in.wav", "en", "es", "/tmp")
    job.advance(Stage.CONVERTING)
    job.advance(Stage.TRANSCRIBING)

    with pytest.raises(RuntimeError):
        job.advance(Stage.SYNTHESIZING)
    with pytest.raises(RuntimeError):
        job.advance(Stage.TRANSCRIBING)

    job.advance(Stage.FAILED)
    with pytest.raises(RuntimeError):
        job.advance(Stage.FAILED)


def test_default_language_table():
    registry = LanguageRegistry()
    assert set(registry) == {"en", "es", "fr", "it"}
    assert registry.resolve("fr") == LanguageEntry(recognition_code="fr-FR", translation_code="fr")
    assert registry.resolve("de") is None
    assert registry.resolve(None) is None


def test_language_table_is_read_only():
    registry = LanguageRegistry()
    with pytest.raises(TypeError):
        registry._entries["de"] = LanguageEntry("de-DE", "de")
    assert "de" not in DEFAULT_LANGUAGES


def test_language_table_from_file(tmp_path):
    path = tmp_path / "languages.json"
    path.write_text(json.dumps({"pt": {"recognition_code": "pt-BR", "translation_code": "pt"}}))

    registry = LanguageRegistry.from_file(str(path))

    assert list(registry) == ["pt"]
    assert registry["pt"].recognition_code == "pt-BR"


def test_temp_paths_are_namespaced_and_cleaned(tmp_path):
    temp = TempResourceManager("job42", str(tmp_path))
    first = temp.allocate(".wav")
    second = temp.allocate(".wav")
    for path in (first, second):
        with open(path, "wb") as f:
            f.write(b"x")

    assert first != second
    assert os.path.basename(first).startswith("job42_")
    assert all(a.owner_job_id == "job42" for a in temp.artifacts)

    assert temp.cleanup() == []
    assert os.listdir(tmp_path) == []
    assert temp.artifacts == []


def test_release_and_promote(tmp_path):
    temp = TempResourceManager("job", str(tmp_path))
    gone = temp.allocate(".wav")
    kept = temp.allocate(".mp3")
    for path in (gone, kept):
        with open(path, "wb") as f:
            f.write(b"x")

    temp.release(gone)
    final = str(tmp_path / "final.mp3")
    temp.promote(kept, final)

    assert temp.artifacts == []
    assert os.listdir(tmp_path) == ["final.mp3"]


def test_cleanup_failures_are_collected_not_raised(tmp_path):
    temp = TempResourceManager("job", str(tmp_path))
    path = temp.allocate(".wav")
    with open(path, "wb") as f:
        f.write(b"x")

    with patch("pipeline.temp_files.os.remove", side_effect=PermissionError("busy")):
        errors = temp.cleanup()

    assert len(errors) == 1
    assert isinstance(errors[0], ResourceCleanupError)
    assert temp.artifacts == []


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("TRANSCRIPTION_URL", "http://asr:3000/transcribe")
    monkeypatch.setenv("TEMPO", "1.5")
    monkeypatch.setenv("TTS_SLOW", "true")
    monkeypatch.setenv("TRANSLATION_TIMEOUT", "30")

    config = PipelineConfig.from_env()

    assert config.transcription_url == "http://asr:3000/transcribe"
    assert config.tempo == 1.5
    assert config.tts_slow is True
    assert config.translation_timeout == 30.0
    assert config.tts_max_chunk_chars == 200
