"""Configuration management for watchlog."""

import logging
import os
import re
import stat
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_REGION = "US"

COUNTRIES = {
    "US": "United States",
    "GB": "United Kingdom",
    "CA": "Canada",
    "AU": "Australia",
    "DE": "Germany",
    "FR": "France",
    "IT": "Italy",
    "ES": "Spain",
    "TR": "Turkey",
}

_REGION_PATTERN = re.compile(r"^[A-Z]{2}$")


class ConfigError(Exception):
    """Configuration error."""

    pass


def normalize_region(region: str) -> str:
    """Validate an ISO 3166-1 alpha-2 code and upper-case it."""
    code = (region or "").strip().upper()
    if not _REGION_PATTERN.match(code):
        raise ConfigError(f"Invalid region code: {region!r}")
    return code


def configure_logging(log_path: Path, debug: bool = False) -> None:
    """Send log records to the data directory log file."""
    log_path.parent.mkdir(parents=True, exist_ok=True)
    root = logging.getLogger("watchlog")
    root.setLevel(logging.DEBUG if debug else logging.INFO)

    for handler in list(root.handlers):
        if not isinstance(handler, logging.FileHandler):
            continue
        if handler.baseFilename == os.path.abspath(log_path):
            return
        root.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(log_path)
    handler.setFormatter(
        logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    )
    root.addHandler(handler)


class Config:
    """Manages watchlog configuration."""

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize config with data directory."""
        if data_dir is None:
            data_dir = Path.cwd() / "data"
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

        self.config_path = self.data_dir / "config.yaml"
        self.library_path = self.data_dir / "library.yaml"
        self.log_path = self.data_dir / "watchlog.log"

        # TMDB credentials
        self.api_key: Optional[str] = None
        self.language: Optional[str] = None

        # Provider region
        self.region: str = DEFAULT_REGION

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()

    @property
    def tmdb_api_key(self) -> Optional[str]:
        """API key, with the TMDB_API_KEY environment variable taking priority."""
        return os.environ.get("TMDB_API_KEY") or self.api_key

    def set_api_key(self, api_key: str) -> None:
        """Set the TMDB API key."""
        if not api_key or not api_key.strip():
            raise ConfigError("API key cannot be empty")
        self.api_key = api_key.strip()

    def set_region(self, region: str) -> None:
        """Set the watch provider region."""
        self.region = normalize_region(region)

    def save(self) -> None:
        """Save configuration to YAML file."""
        data = {
            "tmdb": {
                "api_key": self.api_key,
                "language": self.language,
            },
            "providers": {
                "region": self.region,
            },
        }

        with open(self.config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)

        # Set file permissions to 0600 (owner read/write only)
        if os.name != "nt":
            os.chmod(self.config_path, stat.S_IRUSR | stat.S_IWUSR)

    def load(self) -> None:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            raise ConfigError(
                f"Config file not found: {self.config_path}\n"
                "Run 'watchlog setup' to configure."
            )

        with open(self.config_path) as f:
            data = yaml.safe_load(f) or {}

        tmdb = data.get("tmdb") or {}
        self.api_key = tmdb.get("api_key")
        self.language = tmdb.get("language")

        providers = data.get("providers") or {}
        self.region = normalize_region(providers.get("region") or DEFAULT_REGION)

    def load_or_default(self) -> None:
        """Load configuration if present, keeping defaults otherwise."""
        if self.exists():
            self.load()
