"""Configuration loader for the CityPulse pipeline."""

from functools import lru_cache
from pathlib import Path

import yaml

from citypulse.configs.settings import get_settings

settings = get_settings()


class Config:
    """Configuration for the CityPulse pipeline."""

    # 1. Setup Base Paths
    CONFIG_DIR = Path(__file__).parent.resolve()
    PROJECT_ROOT = settings.BASE_DIR

    # 2. Define File Paths
    PIPELINE_CONFIG_PATH = settings.PIPELINE_CONFIG_PATH
    LEXICON_PATH = settings.LEXICON_PATH

    @classmethod
    @lru_cache
    def load_pipeline_config(cls) -> dict:
        """Load the YAML configuration for the normalization pipeline."""
        return load_yaml_config(cls.PIPELINE_CONFIG_PATH)

    @classmethod
    def get_lexicon_path(cls) -> Path:
        """Return the absolute path to the lexicon YAML."""
        return cls.LEXICON_PATH


def load_yaml_config(path: Path | str) -> dict:
    """
    Read a YAML config file, substituting ``${SETTING}`` placeholders.

    Placeholders are resolved against the current Settings, so
    ``max_records: ${PIPELINE_MAX_RECORDS}`` follows the environment.
    """
    config_file = Path(path)
    if not config_file.exists():
        raise FileNotFoundError(f"Missing config at {config_file}")

    with open(config_file, encoding="utf-8") as f:
        content = f.read()

    for key, value in get_settings().model_dump().items():
        placeholder = f"${{{key}}}"
        if placeholder in content:
            # Handle SecretStr
            val_str = (
                value.get_secret_value()
                if hasattr(value, "get_secret_value")
                else str(value)
            )
            content = content.replace(placeholder, val_str)

    return yaml.safe_load(content) or {}
