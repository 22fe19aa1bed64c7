"""Configuration settings for Tessera.

Storage layout under ``storage_dir``:
- tessera.db: Components and their version history
- logs/: JSONL render and migration logs
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Tessera settings, read from TESSERA_* environment variables and .env."""

    model_config = SettingsConfigDict(
        env_prefix="TESSERA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Storage directory (default: .tessera in current directory)
    storage_dir: Path = Field(default=Path(".tessera"))

    # Directory scanned for *.component.yml template definitions
    definitions_dir: Path = Field(default=Path("components"))

    # URL generation for code-defined component assets
    base_path: str = "/"
    asset_version: str = "0.0.0"

    # Rendering defaults
    preview: bool = False
    verbosity: int = Field(default=0, ge=0, le=2)

    @property
    def db_path(self) -> Path:
        """Path to the component registry database."""
        return self.storage_dir / "tessera.db"

    @property
    def db_url(self) -> str:
        """SQLAlchemy URL for the component registry database."""
        return f"sqlite:///{self.db_path}"

    @property
    def logs_dir(self) -> Path:
        return self.storage_dir / "logs"

    def ensure_storage_dir(self) -> None:
        """Create the storage directory holding the registry database and logs."""
        self.storage_dir.mkdir(parents=True, exist_ok=True)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None


class _SettingsProxy:
    """Module-level ``settings`` that defers loading until an attribute is read."""

    def __getattr__(self, name: str) -> object:
        return getattr(get_settings(), name)


settings: Settings = _SettingsProxy()  # type: ignore[assignment]
