"""Shared fixtures for music server tests."""

import wave
from pathlib import Path

import pytest


def write_wav(path: Path, seconds: float = 1.0, sample_rate: int = 8000) -> Path:
    """Write a silent mono 16-bit WAV file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with wave.open(str(path), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(b"\x00\x00" * int(seconds * sample_rate))
    return path


@pytest.fixture
def make_wav():
    """Factory fixture creating silent WAV files."""
    return write_wav


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Point config and data directories at a temp folder."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for name in ("MUSIC_SERVER_HOST", "MUSIC_SERVER_PORT", "MUSIC_SERVER_LIBRARY_PATHS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
