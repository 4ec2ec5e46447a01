"""
Versioned on-disk storage for Cortex CLI profiles.

The config file is JSON at ``<CORTEX_CONFIG_DIR or ~/.cortex>/config``::

    {"version": "5", "profiles": {"default": {...}}, "currentProfile": "default"}

Older files are upgraded one version at a time when read, and every step is
written back before the next one runs.
"""

import copy
import json
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from cortex_cli.errors import ConfigParseError, ProfileValidationError
from cortex_cli.schemas import PROFILE_SCHEMAS, Profile, describe_validation_error
from cortex_cli.settings import get_settings

logger = logging.getLogger(__name__)

CURRENT_VERSION = "5"

CORTEX_REGISTRY_NAME = "Cortex Private Registry"
DEFAULT_TEMPLATE_REPO = "CognitiveScale/cortex-code-templates"
DEFAULT_TEMPLATE_BRANCH = "main"

# Never written to disk
EPHEMERAL_FIELDS = ("token", "featureFlags", "feature_flags")


@dataclass
class ConfigEnvelope:
    """A config file split into its version tag and everything else."""
    version: str
    payload: Dict[str, Any]

    @classmethod
    def from_json(cls, data: Any, path: Optional[Path] = None) -> "ConfigEnvelope":
        if not isinstance(data, dict):
            raise ConfigParseError(path, "expected a JSON object")
        if "version" not in data:
            # Version 1 files are a bare map of profiles
            return cls(version="1", payload={"profiles": data})
        payload = {key: value for key, value in data.items() if key != "version"}
        return cls(version=str(data["version"]), payload=payload)

    def to_json(self) -> Dict[str, Any]:
        return {"version": self.version, **self.payload}


def cortex_registry_for(url: str) -> Dict[str, Any]:
    """The private registry that ships with every Cortex cluster."""
    hostname = urlparse(url).hostname or ""
    return {
        "name": CORTEX_REGISTRY_NAME,
        "url": hostname.replace("api", "private-registry", 1),
        "isCortex": True,
    }


def default_template_config() -> Dict[str, Any]:
    return {"repo": DEFAULT_TEMPLATE_REPO, "branch": DEFAULT_TEMPLATE_BRANCH}


def migrate_v3(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Version 3 -> 4: every profile gets the Cortex private registry."""
    migrated = copy.deepcopy(payload)
    for profile in migrated.get("profiles", {}).values():
        registries = profile.setdefault("registries", {})
        if CORTEX_REGISTRY_NAME not in registries:
            registries[CORTEX_REGISTRY_NAME] = cortex_registry_for(profile.get("url", ""))
        profile.setdefault("currentRegistry", CORTEX_REGISTRY_NAME)
    return migrated


def migrate_v4(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Version 4 -> 5: every profile gets the default template repository."""
    migrated = copy.deepcopy(payload)
    for profile in migrated.get("profiles", {}).values():
        profile.setdefault("templateConfig", default_template_config())
    return migrated


# version -> (next version, migration)
MIGRATIONS = {
    "3": ("4", migrate_v3),
    "4": ("5", migrate_v4),
}


def upgrade(envelope: ConfigEnvelope) -> ConfigEnvelope:
    """Apply a single migration step."""
    next_version, migrate = MIGRATIONS[envelope.version]
    return ConfigEnvelope(version=next_version, payload=migrate(envelope.payload))


def _write_json(path: Path, data: Dict[str, Any]):
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".config-")
    try:
        with os.fdopen(fd, "w") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def _strip_ephemeral(profile: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in profile.items() if key not in EPHEMERAL_FIELDS}


def validate_profile(name: str, data: Dict[str, Any], version: str = CURRENT_VERSION) -> Profile:
    """Validate raw profile data against the schema for ``version``."""
    schema = PROFILE_SCHEMAS[version]
    try:
        return schema.model_validate({**data, "name": name})
    except ValidationError as e:
        raise ProfileValidationError(name, describe_validation_error(e))


class Config:
    """All configured profiles plus a pointer to the active one."""

    def __init__(
        self,
        version: str = CURRENT_VERSION,
        profiles: Optional[Dict[str, Dict[str, Any]]] = None,
        current_profile: Optional[str] = None,
        path: Optional[Path] = None,
    ):
        self.version = version
        self.profiles = profiles or {}
        self.current_profile = current_profile
        self.path = path or get_settings().config_file

    @classmethod
    def from_envelope(cls, envelope: ConfigEnvelope, path: Optional[Path] = None) -> "Config":
        payload = envelope.payload
        return cls(
            version=envelope.version,
            profiles=dict(payload.get("profiles") or {}),
            current_profile=payload.get("currentProfile"),
            path=path,
        )

    def to_json(self) -> Dict[str, Any]:
        data = {
            "version": self.version,
            "profiles": {name: _strip_ephemeral(profile) for name, profile in self.profiles.items()},
        }
        if self.current_profile is not None:
            data["currentProfile"] = self.current_profile
        return data

    def save(self):
        """Write the config file, without tokens or feature flags."""
        self.profiles = {name: _strip_ephemeral(profile) for name, profile in self.profiles.items()}
        _write_json(self.path, self.to_json())
        logger.debug("Saved config version %s to %s", self.version, self.path)

    def get_profile(self, name: str, use_env: bool = False, side_loaded=None, quiet: bool = False) -> Optional[Profile]:
        """
        Return the validated profile ``name`` with environment values applied,
        or None if there is no such profile.

        Raises:
            ProfileValidationError: if the stored profile is invalid
        """
        data = self.profiles.get(name)
        if data is None:
            return None
        profile = validate_profile(name, data, self.version)

        from cortex_cli.resolver import apply_environment
        return apply_environment(profile, use_env=use_env, side_loaded=side_loaded, quiet=quiet)

    def set_profile(self, name: str, attrs: Dict[str, Any], project: Optional[str] = None) -> Profile:
        """
        Validate and store a profile. Invalid profiles are never stored.

        Raises:
            ProfileValidationError: listing every violated field
        """
        candidate = dict(attrs)
        if project is not None:
            candidate["project"] = project
        profile = validate_profile(name, candidate, self.version)
        self.profiles[name] = profile.to_json()
        return profile


def default_config(path: Optional[Path] = None) -> Config:
    """A fresh config at the latest version with no profiles."""
    return Config(path=path)


def _reset_legacy_config(path: Path, version: str) -> Config:
    from cortex_cli.utils import print_warning

    backup = path.with_name(f"config_v{version}")
    shutil.copyfile(path, backup)
    config = default_config(path)
    config.save()
    logger.warning("Config version %s cannot be migrated, backed up to %s", version, backup)
    print_warning(f'Old profile found and moved to {backup}. Please run "cortex configure"')
    return config


def read_config() -> Optional[Config]:
    """
    Read the config file, upgrading it to the latest version if needed.

    Returns:
        The config, or None if no config file exists yet

    Raises:
        ConfigParseError: if the file is not valid JSON
    """
    path = get_settings().config_file
    if not path.exists():
        return None

    logger.debug("Reading config from %s", path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ConfigParseError(path, str(e))

    envelope = ConfigEnvelope.from_json(data, path)
    while envelope.version != CURRENT_VERSION:
        if envelope.version not in MIGRATIONS:
            return _reset_legacy_config(path, envelope.version)
        previous = envelope.version
        envelope = upgrade(envelope)
        _write_json(path, envelope.to_json())
        logger.debug("Migrated config from version %s to %s", previous, envelope.version)

    return Config.from_envelope(envelope, path)
