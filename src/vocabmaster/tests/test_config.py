"""Tests for configuration settings."""
import pytest

from vocabmaster.config import DATA_DIR, Settings, settings


def test_data_directory_exists():
    assert DATA_DIR.exists()


def test_settings_defaults():
    """Test default settings values."""
    assert settings.learning.session_sizes == {"EASY": 5, "MEDIUM": 10, "HARD": 20}
    assert settings.learning.mastery_threshold == 5
    assert settings.learning.perfect_recall_points == 10
    assert settings.learning.test_correct_points == 20
    assert settings.learning.default_library == "CET4_CORE"
    assert settings.database.url.startswith("sqlite+aiosqlite://")


def test_validate_rejects_sync_driver():
    test_settings = Settings()
    test_settings.database.url = "sqlite:///vocabmaster.db"
    with pytest.raises(ValueError):
        test_settings.validate()


def test_validate_rejects_empty_sessions():
    test_settings = Settings()
    test_settings.learning.session_sizes = {"EASY": 0, "MEDIUM": 10, "HARD": 20}
    with pytest.raises(ValueError):
        test_settings.validate()


def test_validate_rejects_bad_threshold():
    test_settings = Settings()
    test_settings.learning.mastery_threshold = 0
    with pytest.raises(ValueError):
        test_settings.validate()


if __name__ == "__main__":
    pytest.main([__file__])
