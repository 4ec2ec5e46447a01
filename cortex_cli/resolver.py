"""
Resolve a stored profile into a runtime profile with usable credentials.

Precedence, lowest to highest:

1. values stored in the config file
2. side-loaded values (from the root dispatcher, ``CORTEX_TOKEN_SILENT`` and
   ``CORTEX_FEATURE_FLAGS``)
3. user overrides (``CORTEX_TOKEN``, ``CORTEX_URI``/``CORTEX_URL``,
   ``CORTEX_PROJECT``), only when ``use_env`` is true

Anything still missing after that is fetched with a single Info call.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from cortex_cli.config import read_config
from cortex_cli.credentials import fetch_info_for_profile
from cortex_cli.errors import ConfigNotFoundError, CortexError, ProfileNotFoundError
from cortex_cli.schemas import Profile
from cortex_cli.settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_PROFILE_NAME = "default"


@dataclass
class SideLoaded:
    """Credentials already obtained earlier in this process."""
    token: Optional[str] = None
    feature_flags: Optional[Dict[str, Any]] = None
    profile_name: Optional[str] = None

    def applies_to(self, profile_name: str) -> bool:
        return self.profile_name is None or self.profile_name == profile_name

    @classmethod
    def from_profile(cls, profile: Profile) -> "SideLoaded":
        return cls(token=profile.token, feature_flags=profile.feature_flags, profile_name=profile.name)


@dataclass
class ProfileResult:
    """Outcome of resolving a profile: either a profile or the error that prevented it."""
    profile: Optional[Profile] = None
    error: Optional[CortexError] = None

    @property
    def ok(self) -> bool:
        return self.profile is not None


def _parse_feature_flags(raw: str) -> Optional[Dict[str, Any]]:
    """Parse side-loaded flags. None means they are fetched from the server instead."""
    try:
        flags = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.debug("Ignoring malformed CORTEX_FEATURE_FLAGS: %s", e)
        return None
    if not isinstance(flags, dict):
        logger.debug("Ignoring CORTEX_FEATURE_FLAGS: expected a JSON object, got %s", type(flags).__name__)
        return None
    return flags


def apply_environment(profile: Profile, use_env: bool = True, side_loaded: Optional[SideLoaded] = None,
                      quiet: bool = False) -> Profile:
    """
    Overlay side-loaded values and user environment overrides onto ``profile``.

    ``quiet`` suppresses the notice printed when ``CORTEX_TOKEN`` is used.
    """
    settings = get_settings()

    if side_loaded is not None and side_loaded.applies_to(profile.name):
        if side_loaded.token:
            profile.token = side_loaded.token
        if side_loaded.feature_flags is not None:
            profile.feature_flags = side_loaded.feature_flags

    if settings.token_silent:
        profile.token = settings.token_silent
    if settings.feature_flags:
        flags = _parse_feature_flags(settings.feature_flags)
        if flags is not None:
            profile.feature_flags = flags

    if use_env:
        if settings.token:
            if not quiet:
                from cortex_cli.utils import print_notice
                print_notice("Using token from environment variable $CORTEX_TOKEN")
            profile.token = settings.token
        if settings.url:
            profile.url = settings.url
        if settings.project:
            profile.project = settings.project

    return profile


def get_configured_profile(profile_name: Optional[str] = None, use_env: bool = True,
                           side_loaded: Optional[SideLoaded] = None, quiet: bool = False) -> Profile:
    """
    Look up and validate a profile with environment values applied, without
    contacting the server.

    Raises:
        ConfigNotFoundError: no config file exists
        ProfileNotFoundError: the profile is not configured
        ProfileValidationError: the stored profile is invalid
    """
    config = read_config()
    if config is None:
        raise ConfigNotFoundError()

    name = profile_name or config.current_profile or DEFAULT_PROFILE_NAME
    profile = config.get_profile(name, use_env=use_env, side_loaded=side_loaded, quiet=quiet)
    if profile is None:
        raise ProfileNotFoundError(name)
    return profile


def load_profile(profile_name: Optional[str] = None, use_env: bool = True,
                 side_loaded: Optional[SideLoaded] = None, quiet: bool = False) -> Profile:
    """
    Load a profile ready for API calls, issuing a token if none was supplied.

    Raises:
        ConfigError: see get_configured_profile
        CredentialError, ApiError: a token could not be issued
    """
    profile = get_configured_profile(profile_name, use_env=use_env, side_loaded=side_loaded, quiet=quiet)
    name = profile.name

    if not profile.token or profile.feature_flags is None:
        logger.debug("Fetching server info for profile %s", name)
        info = fetch_info_for_profile(profile)
        if not profile.token:
            profile.token = info.jwt
        if profile.feature_flags is None:
            profile.feature_flags = info.feature_flags

    return profile


def resolve_profile(profile_name: Optional[str] = None, use_env: bool = True,
                    side_loaded: Optional[SideLoaded] = None, quiet: bool = False) -> ProfileResult:
    """Like load_profile, but returns failures instead of raising them."""
    try:
        return ProfileResult(profile=load_profile(
            profile_name, use_env=use_env, side_loaded=side_loaded, quiet=quiet
        ))
    except CortexError as e:
        logger.debug("Unable to resolve profile: %s", e)
        return ProfileResult(error=e)
