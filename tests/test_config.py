from __future__ import annotations

import pytest
from pydantic import ValidationError

from talkbridge.config import Settings, get_settings
from talkbridge.profile import ProductProfile
from talkbridge.state import WindowSignal


def test_settings_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("TALKBRIDGE_STANDARD_TIMEOUT_SECONDS", "3")
    monkeypatch.setenv("TALKBRIDGE_LOG_LEVEL", "debug")
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.standard_timeout_seconds == 3
    assert settings.log_level == "debug"
    assert settings.text_timeout_unit_chars == 500


def test_settings_reject_non_positive_timeout() -> None:
    with pytest.raises(ValidationError):
        Settings(standard_timeout_seconds=0)


def test_profile_classifies_titles(profile: ProductProfile) -> None:
    assert profile.classify_title(None) is WindowSignal.OTHER
    assert profile.classify_title("") is WindowSignal.STARTUP_OR_CLEANUP
    assert profile.classify_title("Splash") is WindowSignal.STARTUP_OR_CLEANUP
    assert profile.classify_title("FakeVoice - project.wproj") is WindowSignal.MAIN
    assert profile.classify_title("Save Audio") is WindowSignal.FILE_SAVING
    assert profile.classify_title("Error") is WindowSignal.OTHER


def test_profile_normalizes_extensions(profile: ProductProfile) -> None:
    updated = ProductProfile.model_validate({**profile.model_dump(), "audio_extension": "mp3"})
    assert updated.audio_extension == ".mp3"

    with pytest.raises(ValidationError):
        ProductProfile.model_validate({**profile.model_dump(), "process_file_name": " "})
