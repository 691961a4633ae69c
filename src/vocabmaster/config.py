"""Configuration settings for the vocabulary trainer."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))

# Learning settings
SESSION_SIZES = {"EASY": 5, "MEDIUM": 10, "HARD": 20}  # items per fresh study session
SUPPORTED_DRIVERS = ("sqlite+aiosqlite",)


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", f"sqlite+aiosqlite:///{DATA_DIR / 'vocabmaster.db'}")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"
    timeout: float = float(os.getenv("DATABASE_TIMEOUT", "10"))  # seconds per store operation


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class LearningSettings:
    """Learning process settings."""
    session_sizes: Dict[str, int] = field(default_factory=lambda: dict(SESSION_SIZES))
    mastery_threshold: int = int(os.getenv("MASTERY_THRESHOLD", "5"))
    perfect_recall_points: int = int(os.getenv("PERFECT_RECALL_POINTS", "10"))
    test_correct_points: int = int(os.getenv("TEST_CORRECT_POINTS", "20"))
    daily_target: int = int(os.getenv("DAILY_TARGET", "20"))
    default_library: str = os.getenv("DEFAULT_LIBRARY", "CET4_CORE")


@dataclass
class LookupSettings:
    """Word lookup settings."""
    enabled: bool = os.getenv("LOOKUP_ENABLED", "true").lower() == "true"
    source_language: str = os.getenv("LOOKUP_SOURCE_LANGUAGE", "en")
    target_language: str = os.getenv("LOOKUP_TARGET_LANGUAGE", "zh-CN")
    max_cognates: int = int(os.getenv("MAX_COGNATES", "4"))


@dataclass
class MonitoringSettings:
    """Metrics exporter settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_learning_settings() -> LearningSettings:
    """Get learning settings."""
    return LearningSettings()


def get_lookup_settings() -> LookupSettings:
    """Get lookup settings."""
    return LookupSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    learning: LearningSettings = field(default_factory=get_learning_settings)
    lookup: LookupSettings = field(default_factory=get_lookup_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        driver = self.database.url.split("://", 1)[0]
        if driver not in SUPPORTED_DRIVERS:
            raise ValueError(
                f"DATABASE_URL must use an async driver ({', '.join(SUPPORTED_DRIVERS)}), got {driver}"
            )

        if self.database.timeout <= 0:
            raise ValueError("DATABASE_TIMEOUT must be positive")

        for difficulty, size in self.learning.session_sizes.items():
            if size < 1:
                raise ValueError(f"Session size for {difficulty} must be positive")

        if self.learning.mastery_threshold < 1:
            raise ValueError("MASTERY_THRESHOLD must be positive")

        if self.learning.perfect_recall_points < 0 or self.learning.test_correct_points < 0:
            raise ValueError("Point rewards cannot be negative")

        if self.learning.daily_target < 1:
            raise ValueError("DAILY_TARGET must be positive")


# Create global settings instance
settings = Settings()
settings.validate()
