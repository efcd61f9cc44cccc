from __future__ import annotations

import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

from trackmeta.model import DEFAULT_MAX_BPM


class BpmConfig(BaseModel):
    """BPM import configuration."""

    # Values above are scaled down by powers of 10 (lost decimal point)
    max_value: float = Field(default=DEFAULT_MAX_BPM, gt=0)


class CoverArtConfig(BaseModel):
    """Cover art import configuration."""

    enabled: bool = Field(default=True)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="WARNING")  # DEBUG, INFO, WARNING, ERROR
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    hash_paths: bool = Field(default=False)


class Config(BaseModel):
    """
    Main configuration for trackmeta.

    Loads from TOML file with optional environment variable overrides.
    """

    bpm: BpmConfig = Field(default_factory=BpmConfig)
    cover_art: CoverArtConfig = Field(default_factory=CoverArtConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """
        Load configuration from TOML file with environment variable overrides.

        Environment variables take precedence and follow the pattern:
        TRACKMETA_<SECTION>_<KEY> (e.g., TRACKMETA_BPM_MAX_VALUE)
        """
        config_dict: dict[str, object] = {}

        if config_path and config_path.exists():
            config_dict = tomllib.loads(config_path.read_text())

        config_dict = cls._merge_env_overrides(config_dict)
        return cls.model_validate(config_dict)

    @staticmethod
    def _section(config_dict: dict[str, object], name: str) -> dict[str, object]:
        section = config_dict.setdefault(name, {})
        if not isinstance(section, dict):
            section = {}
            config_dict[name] = section
        return section

    @classmethod
    def _merge_env_overrides(cls, config_dict: dict[str, object]) -> dict[str, object]:
        """Return the dictionary with env vars applied, ready for Pydantic validation."""
        env_prefix = "TRACKMETA_"

        bpm = cls._section(config_dict, "bpm")
        if max_bpm := os.getenv(f"{env_prefix}BPM_MAX_VALUE"):
            bpm["max_value"] = max_bpm

        cover_art = cls._section(config_dict, "cover_art")
        if cover_art_enabled := os.getenv(f"{env_prefix}COVER_ART_ENABLED"):
            cover_art["enabled"] = cover_art_enabled.lower() in ("true", "1", "yes")

        logging_config = cls._section(config_dict, "logging")
        if log_level := os.getenv(f"{env_prefix}LOGGING_LEVEL"):
            logging_config["level"] = log_level
        if log_format := os.getenv(f"{env_prefix}LOGGING_FORMAT"):
            logging_config["format"] = log_format
        if log_hash_paths := os.getenv(f"{env_prefix}LOGGING_HASH_PATHS"):
            logging_config["hash_paths"] = log_hash_paths.lower() in ("true", "1", "yes")

        return config_dict


## Tests


def test_config_defaults():
    config = Config()
    assert config.bpm.max_value == 300.0
    assert config.cover_art.enabled is True
    assert config.logging.level == "WARNING"
    assert config.logging.hash_paths is False


def test_config_from_dict():
    config = Config.model_validate({"bpm": {"max_value": 200}, "cover_art": {"enabled": False}})
    assert config.bpm.max_value == 200.0
    assert config.cover_art.enabled is False


def test_config_rejects_non_positive_max_bpm():
    import pytest
    from pydantic import ValidationError

    with pytest.raises(ValidationError):
        Config.model_validate({"bpm": {"max_value": 0}})


def test_config_env_overrides(
    monkeypatch,  # pyright: ignore[reportMissingParameterType,reportUnknownParameterType]
):
    monkeypatch.setenv("TRACKMETA_BPM_MAX_VALUE", "180")  # pyright: ignore[reportUnknownMemberType]
    monkeypatch.setenv("TRACKMETA_COVER_ART_ENABLED", "no")  # pyright: ignore[reportUnknownMemberType]
    monkeypatch.setenv("TRACKMETA_LOGGING_HASH_PATHS", "1")  # pyright: ignore[reportUnknownMemberType]

    config = Config.load()
    assert config.bpm.max_value == 180.0
    assert config.cover_art.enabled is False
    assert config.logging.hash_paths is True


def test_config_load_toml(tmp_path):  # pyright: ignore[reportMissingParameterType]
    config_path = tmp_path / "trackmeta.toml"
    config_path.write_text('[bpm]\nmax_value = 250.0\n\n[logging]\nlevel = "DEBUG"\n')

    config = Config.load(config_path)
    assert config.bpm.max_value == 250.0
    assert config.logging.level == "DEBUG"


def test_config_load_nonexistent_file():
    config = Config.load(Path("/nonexistent/config.toml"))
    assert config.bpm.max_value == 300.0
