import os
from pathlib import Path
from typing import Optional


def str_to_bool(value) -> bool:
    """Convert string to bool"""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    true_values = {'true', 'yes', '1', 'on', 't', 'y'}
    false_values = {'false', 'no', '0', 'off', 'f', 'n'}
    value = str(value).lower().strip()
    if value in true_values:
        return True
    if value in false_values:
        return False
    return False


class Settings:
    """Simple settings class using environment variables."""

    def __init__(self):
        # Config location
        config_dir = os.getenv("CORTEX_CONFIG_DIR")
        self.config_dir: Path = Path(config_dir) if config_dir else Path.home() / ".cortex"

        # User-facing overrides (CORTEX_URI is deprecated in favour of CORTEX_URL)
        self.url: Optional[str] = os.getenv("CORTEX_URI") or os.getenv("CORTEX_URL")
        self.token: Optional[str] = os.getenv("CORTEX_TOKEN")
        self.project: Optional[str] = os.getenv("CORTEX_PROJECT")

        # Side-loaded values, not documented to end users
        self.token_silent: Optional[str] = os.getenv("CORTEX_TOKEN_SILENT")
        self.feature_flags: Optional[str] = os.getenv("CORTEX_FEATURE_FLAGS")

        # Dispatcher and feature gating escape hatches
        # Any non-empty value counts, including "0"
        self.skip_init_profile: bool = bool(os.getenv("CORTEX_SKIP_INIT_PROFILE"))
        self.all_ga_features_enabled: bool = str_to_bool(os.getenv("ALL_GA_FEATURES_ENABLED", False))
        self.preview_features_enabled: bool = str_to_bool(os.getenv("PREVIEW_FEATURES_ENABLED", False))

        # Debug and logging
        self.debug: bool = str_to_bool(os.getenv("CORTEX_DEBUG", False))

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config"


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings()
