"""
Check this CLI's version against the range the cluster declares for it.

Clusters publish npm-style semver ranges (``^6.0.0``, ``>=6.1 <7``,
``6.x || 7.x``). They are translated to PEP 440 specifier sets and matched
with ``packaging``.
"""

import logging
import re
from typing import List, NamedTuple, Optional

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from cortex_cli import __version__
from cortex_cli.api_client import APIClient, get_api_client
from cortex_cli.errors import CompatibilityError

logger = logging.getLogger(__name__)

APPLICATION = "cortex-cli"

_OPERATOR = re.compile(r"^(>=|<=|>|<|=|\^|~)?\s*v?(.+)$")
_WILDCARDS = {"x", "X", "*"}


class Compatibility(NamedTuple):
    current: str
    required: str
    satisfied: bool


def _parts(version: str) -> List[Optional[int]]:
    """``1.2.x`` -> [1, 2, None]; missing trailing parts are None."""
    parts: List[Optional[int]] = []
    for part in version.split("-")[0].split(".")[:3]:
        parts.append(None if part in _WILDCARDS else int(part))
    return parts + [None] * (3 - len(parts))


def _version(parts: List[Optional[int]]) -> str:
    return ".".join(str(part or 0) for part in parts)


def _comparator(token: str) -> List[str]:
    match = _OPERATOR.match(token)
    if not match:
        raise CompatibilityError(f"Invalid version range element '{token}'")
    operator, version = match.groups()
    if version in _WILDCARDS:
        return []
    try:
        major, minor, patch = _parts(version)
    except ValueError:
        raise CompatibilityError(f"Invalid version range element '{token}'")
    if major is None:
        return []
    lower = _version([major, minor, patch])

    if operator == "^":
        if major > 0 or minor is None:
            upper = f"{major + 1}.0.0"
        elif minor > 0 or patch is None:
            upper = f"0.{minor + 1}.0"
        else:
            upper = f"0.0.{patch + 1}"
        return [f">={lower}", f"<{upper}"]
    if operator == "~":
        upper = f"{major + 1}.0.0" if minor is None else f"{major}.{minor + 1}.0"
        return [f">={lower}", f"<{upper}"]
    if operator in (">=", "<=", ">", "<"):
        return [f"{operator}{lower}"]
    # Bare or "=" versions; wildcards match the whole release line
    if minor is None:
        return [f"=={major}.*"]
    if patch is None:
        return [f"=={major}.{minor}.*"]
    return [f"=={lower}"]


def to_specifier_sets(requirement: str) -> List[SpecifierSet]:
    """Translate an npm semver range into alternative specifier sets."""
    alternatives = []
    for alternative in requirement.split("||"):
        # "1.0.0 - 2.0.0" is an inclusive range
        alternative = re.sub(r"\s+-\s+", " - ", alternative.strip())
        tokens = alternative.split()
        specifiers: List[str] = []
        if len(tokens) == 3 and tokens[1] == "-":
            specifiers = _comparator(f">={tokens[0]}") + _comparator(f"<={tokens[2]}")
        else:
            # Operators may be separated from their version: ">= 6.0.0"
            joined = re.sub(r"(>=|<=|>|<|=|\^|~)\s+", r"\1", alternative)
            for token in joined.split():
                specifiers.extend(_comparator(token))
        try:
            alternatives.append(SpecifierSet(",".join(specifiers)))
        except InvalidSpecifier as e:
            raise CompatibilityError(f"Invalid version range '{requirement}': {e}")
    return alternatives


def satisfies(version: str, requirement: str) -> bool:
    try:
        current = Version(version)
    except InvalidVersion:
        raise CompatibilityError(f"Invalid version '{version}'")
    return any(spec.contains(current, prereleases=True) for spec in to_specifier_sets(requirement))


def check_compatibility(profile, client: Optional[APIClient] = None) -> Compatibility:
    """
    Compare the installed CLI version with the cluster's requirement.

    Raises:
        ApiError: if the requirement cannot be fetched
        CompatibilityError: if the requirement cannot be parsed
    """
    client = client or get_api_client(profile)
    required = client.get_required_version(APPLICATION)
    satisfied = satisfies(__version__, required)
    logger.debug("compatibility: current %s, required %s, satisfied %s", __version__, required, satisfied)
    return Compatibility(current=__version__, required=required, satisfied=satisfied)
