"""
Configuration loader for the sitemap scanner.
Handles environment variables and YAML defaults configuration.
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, fields
import yaml
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


DEFAULT_CONFIG_PATH = Path(__file__).parent / "scanner.yaml"


@dataclass
class ScannerConfig:
    """
    Main scanner configuration.
    Delays and timeouts are in seconds.
    """
    # Fetch queue
    max_concurrent_requests: int = 3
    request_delay: float = 1.0  # pacing between admissions, also the plain retry delay
    max_retries: int = 3
    rate_limit_base_delay: float = 2.0
    rate_limit_max_delay: float = 10.0

    # Timeouts
    sitemap_timeout: float = 15.0
    page_timeout: float = 5.0
    scan_timeout: float = 30.0

    # Traversal
    child_sitemap_delay: float = 1.0
    max_sitemap_depth: int = 10
    max_urls: int = 100  # 0 disables truncation

    # Page enrichment
    batch_size: int = 5
    batch_delay: float = 0.5

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScannerConfig":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "ScannerConfig":
        """Load configuration from YAML defaults, overridden by environment."""
        if config_path is None:
            path = DEFAULT_CONFIG_PATH
        else:
            path = Path(config_path)

        values: Dict[str, Any] = {}
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f) or {}
            values.update(yaml_config.get("defaults", {}))

        # Environment wins over YAML
        for f in fields(cls):
            env_name = "LOG_LEVEL" if f.name == "log_level" else f"SCANNER_{f.name.upper()}"
            raw = os.getenv(env_name)
            if raw is None:
                continue
            if f.type in (bool, "bool"):
                values[f.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            elif f.type in (int, "int"):
                values[f.name] = int(raw)
            elif f.type in (float, "float"):
                values[f.name] = float(raw)
            else:
                values[f.name] = raw

        return cls.from_dict(values)


# Global config instance
_config: Optional[ScannerConfig] = None


def get_config(config_path: Optional[str] = None) -> ScannerConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = ScannerConfig.load(config_path)
    return _config


def reload_config(config_path: Optional[str] = None) -> ScannerConfig:
    """Force reload the configuration."""
    global _config
    _config = ScannerConfig.load(config_path)
    return _config
