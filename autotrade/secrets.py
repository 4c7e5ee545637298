"""Secrets management: load NovaDAX API credentials from environment or config file.

Priority order:
1. Environment variables: NOVADAX_API_KEY, NOVADAX_API_SECRET
2. Config file: ~/.novadax_config.json or custom path via ENV NOVADAX_CONFIG_PATH
"""
import json
import os
from pathlib import Path
from typing import NamedTuple, Optional


class NovaDaxCredentials(NamedTuple):
    api_key: str
    api_secret: str


def load_credentials(config_path: Optional[str] = None) -> NovaDaxCredentials:
    """Load NovaDAX credentials from env or config file.

    Args:
        config_path: Optional override path to config file. If not provided,
                     checks NOVADAX_CONFIG_PATH env var, then ~/.novadax_config.json

    Raises:
        ValueError: If credentials are not found or incomplete
    """
    api_key = os.getenv("NOVADAX_API_KEY")
    api_secret = os.getenv("NOVADAX_API_SECRET")

    if api_key and api_secret:
        return NovaDaxCredentials(api_key=api_key, api_secret=api_secret)

    if config_path is None:
        config_path = os.getenv("NOVADAX_CONFIG_PATH")
    if config_path is None:
        config_path = str(Path.home() / ".novadax_config.json")

    config_file = Path(config_path)
    if config_file.exists():
        try:
            with config_file.open("r") as f:
                cfg = json.load(f)
        except (OSError, ValueError) as e:
            raise ValueError(f"Failed to load config from {config_path}: {e}")
        api_key = cfg.get("api_key") or api_key
        api_secret = cfg.get("api_secret") or api_secret

    if not api_key or not api_secret:
        raise ValueError(
            "Missing NovaDAX credentials. Provide via:\n"
            "  - Environment: NOVADAX_API_KEY, NOVADAX_API_SECRET\n"
            f"  - Config file: {config_path}\n"
            "  - NOVADAX_CONFIG_PATH env var to override config location"
        )

    return NovaDaxCredentials(api_key=api_key, api_secret=api_secret)


def save_config(config_path: str, api_key: str, api_secret: str) -> None:
    """Save credentials to a config file readable only by the owner.

    WARNING: Stores secrets in plaintext.
    """
    cfg_file = Path(config_path)
    cfg_file.parent.mkdir(parents=True, exist_ok=True)
    with cfg_file.open("w") as f:
        json.dump({"api_key": api_key, "api_secret": api_secret}, f, indent=2)
    if os.name == "posix":
        cfg_file.chmod(0o600)
