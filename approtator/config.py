"""
Runtime settings for the rotator.

Settings come from an optional YAML file (``--config``, ``$APPROTATOR_CONFIG``
or ``./approtator.yaml``) layered over built-in defaults. The ``chainId``
environment variable overrides the network id.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml

from approtator.errors import ConfigError

CONFIG_ENV_VAR = "APPROTATOR_CONFIG"
CHAIN_ID_ENV_VAR = "chainId"
DEFAULT_CONFIG_FILE = "approtator.yaml"

_POSITIVE_INTS = ("batch_size", "retry_attempts", "max_keys_per_file", "command_timeout")


@dataclass
class Settings:
    network_id: str = "mainnet"
    pocket_binary: str = "pocket"
    fee: int = 10000
    stake_amount: str = "15000000000"
    relay_chains: list = field(default_factory=lambda: ["0001"])
    batch_size: int = 50
    max_keys_per_file: int = 100
    retry_attempts: int = 10
    command_timeout: int = 120
    # Encrypts the throwaway keybase each action imports its key into.
    keybase_passphrase: str = "approtator"
    input_dir: str = "input"
    output_dir: str = "output"
    log_level: str = "WARNING"

    @property
    def input_path(self) -> Path:
        return Path(self.input_dir).expanduser()

    @property
    def output_path(self) -> Path:
        return Path(self.output_dir).expanduser()


def resolve_config_path(path: Optional[Path] = None) -> Optional[Path]:
    """
    Return the config file to load, or None when running on defaults.
    An explicit path must exist; the fallbacks are optional.
    """
    if path is not None:
        path = Path(path).expanduser()
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        return path

    env = os.getenv(CONFIG_ENV_VAR)
    if env:
        env_path = Path(env).expanduser()
        if not env_path.exists():
            raise ConfigError(f"{CONFIG_ENV_VAR} points to a missing file: {env_path}")
        return env_path

    local = Path.cwd() / DEFAULT_CONFIG_FILE
    if local.exists():
        return local
    return None


def _coerce(settings: Settings) -> Settings:
    defaults = Settings()
    for f in fields(Settings):
        value = getattr(settings, f.name)
        expected = type(getattr(defaults, f.name))
        if expected is int:
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"'{f.name}' must be an integer, got {value!r}")
        elif expected is str:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            if not isinstance(value, str):
                raise ConfigError(f"'{f.name}' must be a string, got {value!r}")
            setattr(settings, f.name, value)
        elif expected is list:
            if isinstance(value, str):
                value = [value]
            if not isinstance(value, list) or not value:
                raise ConfigError(f"'{f.name}' must be a non-empty list")
            setattr(settings, f.name, [str(v) for v in value])

    for name in _POSITIVE_INTS:
        if getattr(settings, name) < 1:
            raise ConfigError(f"'{name}' must be a positive integer")
    if settings.fee < 0:
        raise ConfigError("'fee' must not be negative")
    return settings


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Load settings from YAML and the environment.
    Raises ConfigError on unreadable files, unknown keys or bad values.
    """
    data = {}
    config_path = resolve_config_path(path)
    if config_path is not None:
        try:
            with config_path.open() as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{config_path} must contain a mapping")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    chain_id = os.getenv(CHAIN_ID_ENV_VAR)
    if chain_id:
        data["network_id"] = chain_id

    return _coerce(Settings(**data))
