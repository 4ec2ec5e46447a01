"""
Short-lived JWTs signed with a profile's JWK.

Tokens are timestamped with the server's clock, as reported by the Info
endpoint, so a client with a skewed clock still produces tokens the server
accepts.
"""

import logging
import re
import time
from typing import Any, Dict, NamedTuple, Optional

import jwt

from cortex_cli.api_client import APIClient
from cortex_cli.errors import CredentialError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = "2m"
DEFAULT_ALGORITHM = "EdDSA"

# Used when the server does not advertise any flags
DEFAULT_FEATURE_FLAGS: Dict[str, Any] = {
    "ga": {"enabled": True, "features": {}},
    "preview": {"enabled": False, "features": {}},
}

_DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h|d|w|M|y)$")

# seconds per unit
_DURATION_UNITS = {
    "ms": 0.001,
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
    "M": 365.25 * 24 * 60 * 60 / 12,
    "y": 365.25 * 24 * 60 * 60,
}


class InfoResult(NamedTuple):
    jwt: str
    feature_flags: Dict[str, Any]


def parse_duration(value: str) -> int:
    """
    Parse a duration such as ``2m`` or ``1d`` into whole seconds.

    Raises:
        CredentialError: if the value is not ``<number><unit>``
    """
    match = _DURATION_PATTERN.match(value or "")
    if not match:
        raise CredentialError(
            f"Invalid duration '{value}', expected <number><unit> with unit one of "
            f"{', '.join(_DURATION_UNITS)}"
        )
    amount, unit = match.groups()
    return int(float(amount) * _DURATION_UNITS[unit])


def generate_jwt(profile, server_ts: float, expires_in: str = DEFAULT_EXPIRES_IN) -> str:
    """Sign a JWT for ``profile`` issued at ``server_ts`` (epoch milliseconds)."""
    lifetime = parse_duration(expires_in)
    jwk = profile.jwk
    algorithm = jwk.get("alg", DEFAULT_ALGORITHM)
    try:
        signing_key = jwt.PyJWK(jwk, algorithm=algorithm)
    except jwt.PyJWTError as e:
        raise CredentialError(f"Invalid JWK for profile <{profile.name}>: {e}")

    issued_at = int(server_ts // 1000)
    claims = {
        "sub": profile.username,
        "aud": profile.audience,
        "iss": profile.issuer,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    headers = {"kid": jwk["kid"]} if jwk.get("kid") else None
    return jwt.encode(claims, signing_key.key, algorithm=algorithm, headers=headers)


def fetch_info_for_profile(profile, expires_in: str = DEFAULT_EXPIRES_IN,
                           client: Optional[APIClient] = None) -> InfoResult:
    """
    Ask the server for its clock and feature flags, then sign a token
    relative to the server's time.

    Raises:
        CredentialError: on a malformed duration (before any network call)
        ApiError: if the Info endpoint fails
    """
    parse_duration(expires_in)

    client = client or APIClient(profile.url, retries=1)
    info = client.get_info()

    server_ts = info.get("serverTs")
    if not isinstance(server_ts, (int, float)) or isinstance(server_ts, bool):
        logger.debug("Info response has no usable serverTs, using local clock")
        server_ts = time.time() * 1000
    feature_flags = info.get("featureFlags")
    if not isinstance(feature_flags, dict) or not feature_flags:
        feature_flags = DEFAULT_FEATURE_FLAGS

    token = generate_jwt(profile, server_ts, expires_in)
    return InfoResult(jwt=token, feature_flags=feature_flags)
