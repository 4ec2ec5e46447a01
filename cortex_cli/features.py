"""
Feature flags advertised by the server decide which top-level subcommands
the CLI exposes.

Server payload shape::

    {
        "ga": {"enabled": true, "features": {"runtime": {"enabled": true}}},
        "preview": {"enabled": false, "features": {"data-fabric-pipelines": {"enabled": true}}}
    }
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from cortex_cli.settings import get_settings

GA = "GA"
PREVIEW = "Preview"

FLAG_SUBCOMMANDS = {
    "ga": {
        "accounts": ["projects", "roles", "users"],
        "campaigns": ["campaigns", "missions"],
        "data-fabric": ["connections", "content", "secrets"],
        "models": ["experiments", "models"],
        "runtime": ["actions", "agents", "docker", "sessions", "skills", "tasks", "types", "workspaces", "deploy"],
    },
    "preview": {
        "data-fabric-pipelines": ["pipelines"],
    },
    "default": {
        "all": ["configure", "assessments"],
    },
}


@dataclass
class FeatureFlag:
    name: str
    status: str
    subcommands: List[str]


GA_FEATURES = [FeatureFlag(name, GA, subcommands) for name, subcommands in FLAG_SUBCOMMANDS["ga"].items()]
PREVIEW_FEATURES = [FeatureFlag(name, PREVIEW, subcommands) for name, subcommands in FLAG_SUBCOMMANDS["preview"].items()]

TIERS = {
    "ga": GA_FEATURES,
    "preview": PREVIEW_FEATURES,
}


def all_subcommands() -> List[str]:
    """Every subcommand named anywhere in the flag table."""
    names = list(FLAG_SUBCOMMANDS["default"]["all"])
    for flags in TIERS.values():
        for flag in flags:
            names.extend(flag.subcommands)
    return names


def _section(data: Any, key: str) -> Dict[str, Any]:
    """The object under ``key``, or an empty one if either side is not an object."""
    if not isinstance(data, dict):
        return {}
    value = data.get(key)
    return value if isinstance(value, dict) else {}


class FeatureController:
    def __init__(self, profile):
        self.profile = profile

    @property
    def feature_flags(self) -> Optional[Dict[str, Any]]:
        return getattr(self.profile, "feature_flags", None)

    def tier_enabled(self, tier: str) -> bool:
        """True if every flag in the tier is on, by the server or by env escape hatch."""
        settings = get_settings()
        if tier == "ga" and settings.all_ga_features_enabled:
            return True
        if tier == "preview" and settings.preview_features_enabled:
            return True
        return bool(_section(self.feature_flags, tier).get("enabled"))

    def flag_enabled(self, tier: str, flag_name: str) -> bool:
        features = _section(_section(self.feature_flags, tier), "features")
        return bool(_section(features, flag_name).get("enabled"))

    def collect_subcommands(self, tier: str, flags: List[FeatureFlag]) -> List[str]:
        if self.tier_enabled(tier):
            enabled = flags
        else:
            enabled = [flag for flag in flags if self.flag_enabled(tier, flag.name)]
        return [subcommand for flag in enabled for subcommand in flag.subcommands]

    def get_supported_subcommands(self) -> List[str]:
        """
        Default subcommands are always supported. Without any feature flags
        only those are returned.
        """
        supported = list(FLAG_SUBCOMMANDS["default"]["all"])
        if self.feature_flags is None:
            return supported
        for tier, flags in TIERS.items():
            supported.extend(self.collect_subcommands(tier, flags))
        return supported
