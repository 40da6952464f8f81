"""Configuration management for selfsigned-installer."""

import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import List, Optional

import yaml

from .keys import DEFAULT_KEY_SIZE
from .request import DEFAULT_DIGEST, DEFAULT_VALIDITY_DAYS

CONFIG_DIR = Path(os.environ.get(
    "SELFSIGNED_INSTALLER_CONFIG_DIR",
    Path.home() / ".config" / "selfsigned-installer",
))
CONFIG_FILE = "config.yaml"


@dataclass
class Settings:
    """Defaults for certificate generation and installation."""
    installer: str = "certificateinstaller"
    elevate: List[str] = field(default_factory=lambda: ["pkexec"])
    # Seconds to wait for the installer; None waits indefinitely
    installer_timeout: Optional[float] = None
    key_size: int = DEFAULT_KEY_SIZE
    digest: str = DEFAULT_DIGEST
    store: str = "MY"
    validity_days: int = DEFAULT_VALIDITY_DAYS

    def __post_init__(self):
        if isinstance(self.elevate, str):
            self.elevate = self.elevate.split()
        if self.elevate is None:
            self.elevate = []


def load_settings(config_dir: Path = None) -> Settings:
    """Load settings from config.yaml, then apply environment overrides."""
    config_dir = Path(config_dir or CONFIG_DIR)
    config_file = config_dir / CONFIG_FILE

    data = {}
    if config_file.exists():
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}

    known = {f.name for f in fields(Settings)}
    settings = Settings(**{k: v for k, v in data.items() if k in known})

    if os.environ.get("SELFSIGNED_INSTALLER_EXECUTABLE"):
        settings.installer = os.environ["SELFSIGNED_INSTALLER_EXECUTABLE"]
    if "SELFSIGNED_INSTALLER_ELEVATE" in os.environ:
        settings.elevate = os.environ["SELFSIGNED_INSTALLER_ELEVATE"].split()

    return settings


def save_settings(settings: Settings, config_dir: Path = None) -> Path:
    """Save settings to config.yaml."""
    config_dir = Path(config_dir or CONFIG_DIR)
    config_dir.mkdir(parents=True, exist_ok=True)

    config_file = config_dir / CONFIG_FILE
    with open(config_file, "w") as f:
        yaml.dump(asdict(settings), f, default_flow_style=False)
    return config_file


def update_settings(values: dict, config_dir: Path = None) -> Path:
    """Merge ``values`` into config.yaml without persisting environment overrides."""
    config_dir = Path(config_dir or CONFIG_DIR)
    config_file = config_dir / CONFIG_FILE

    data = {}
    if config_file.exists():
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}

    known = {f.name for f in fields(Settings)}
    merged = {k: v for k, v in data.items() if k in known}
    merged.update(values)
    return save_settings(Settings(**merged), config_dir)
