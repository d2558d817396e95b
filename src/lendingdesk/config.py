"""Configuration management for lendingdesk.

Loads configuration from environment variables and provides defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class Config:
    """Application configuration."""

    # Storage
    data_dir: Path

    # Logging
    log_level: str

    # Write-through persistence after each mutation
    autosave: bool

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        data_dir_str = os.environ.get(
            "LENDINGDESK_DATA_DIR",
            str(Path.home() / ".lendingdesk" / "data"),
        )
        data_dir = Path(data_dir_str).expanduser()

        return cls(
            data_dir=data_dir,
            log_level=os.environ.get("LENDINGDESK_LOG_LEVEL", "WARNING").upper(),
            autosave=os.environ.get("LENDINGDESK_AUTOSAVE", "1").strip().lower()
            not in ("0", "false", "no", "off"),
        )

    @property
    def accounts_dir(self) -> Path:
        """Directory holding one account file per holder."""
        return self.data_dir / "accounts"

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        # Check data directories can be created
        for path in (self.data_dir, self.accounts_dir):
            if not path.exists():
                try:
                    path.mkdir(parents=True, exist_ok=True)
                except PermissionError:
                    errors.append(f"Cannot create data directory: {path}")

        if self.log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"Unknown log level: {self.log_level}")

        return errors


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
