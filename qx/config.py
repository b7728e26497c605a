"""
Configuration management for qx
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, ConfigDict, ValidationError
from rich.console import Console
from dotenv import load_dotenv

from qx.errors import ConfigError

console = Console(stderr=True)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_COUNT = 5
DEFAULT_TIMEOUT = 60.0

_TRUE_VALUES = ('true', '1', 'yes', 'on')


class Config(BaseModel):
    """Configuration model for qx"""

    model_config = ConfigDict(validate_assignment=True)

    # LLM settings
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    count: int = DEFAULT_COUNT
    api_key: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT

    # Behaviour
    action_menu: bool = True
    log_level: str = "warning"

    config_dir: Path = Path.home() / ".config" / "qx"

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.load_from_file()
        self.load_from_env()

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.json"

    @property
    def history_file(self) -> Path:
        return self.config_dir / "history.json"

    @property
    def log_file(self) -> Path:
        return self.config_dir / "qx.log"

    def ensure_config_dir(self) -> None:
        """Create config directory if it doesn't exist"""
        self.config_dir.mkdir(parents=True, exist_ok=True)

    def load_from_file(self) -> None:
        """Load configuration from JSON file"""
        if not self.config_file.exists():
            return
        try:
            with open(self.config_file, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            console.print(f"[yellow]Warning: Could not load config file: {e}[/yellow]")
            return

        if not isinstance(data, dict):
            console.print("[yellow]Warning: Config file must contain a JSON object[/yellow]")
            return

        for key, value in data.items():
            if key not in type(self).model_fields or key == "config_dir":
                continue
            try:
                setattr(self, key, value)
            except ValidationError as e:
                raise ConfigError(
                    f"invalid {key} in {self.config_file}: {e.errors()[0]['msg']}"
                ) from e

    def load_from_env(self) -> None:
        """Load configuration from environment variables"""
        # Load .env file if it exists
        load_dotenv()

        # Map of environment variables to config keys
        env_mapping = {
            'QX_BASE_URL': 'base_url',
            'QX_MODEL': 'model',
            'QX_COUNT': 'count',
            'QX_TIMEOUT': 'timeout',
            'QX_LOG_LEVEL': 'log_level',
            'QX_ACTION_MENU': 'action_menu',
        }

        for env_var, config_key in env_mapping.items():
            value = os.getenv(env_var)
            if value is None:
                continue
            try:
                if config_key == 'count':
                    value = int(value)
                elif config_key == 'timeout':
                    value = float(value)
                elif config_key == 'action_menu':
                    value = value.lower() in _TRUE_VALUES
            except ValueError:
                raise ConfigError(f"{env_var} has an invalid value: {value!r}")
            setattr(self, config_key, value)

        # QX_API_KEY wins over the generic OpenAI variable
        for env_var in ('OPENAI_API_KEY', 'QX_API_KEY'):
            api_key = os.getenv(env_var)
            if api_key:
                self.api_key = api_key

    def validate_llm(self) -> None:
        """Check that generation can be attempted with this configuration"""
        if not self.model:
            raise ConfigError(f"model is required in {self.config_file}")
        if self.count < 1:
            raise ConfigError(
                f"count must be at least 1, got {self.count} (in {self.config_file})"
            )
        if not self.api_key:
            raise ConfigError(
                f"OPENAI_API_KEY environment variable or api_key in {self.config_file} are required"
            )
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")


def setup_logging(config: Config) -> None:
    """Send qx logs to the log file; stdout and stderr belong to the terminal UI"""
    logger = logging.getLogger("qx")
    logger.setLevel(getattr(logging, config.log_level.upper(), logging.WARNING))
    if any(isinstance(h, logging.FileHandler) for h in logger.handlers):
        return
    try:
        config.ensure_config_dir()
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
    except OSError:
        logger.addHandler(logging.NullHandler())
        return
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s"
    ))
    logger.addHandler(handler)
    logger.propagate = False


# Global config instance
_config = None


def get_config() -> Config:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = Config()
    return _config
