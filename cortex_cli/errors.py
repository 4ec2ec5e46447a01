"""
Exception types raised by the Cortex CLI.

Configuration problems are fatal for commands; the root dispatcher absorbs
them and exposes every subcommand instead.
"""

from typing import List, Optional

RECONFIGURE_HINT = (
    "Please get your Personal Access Token from the Cortex Console and run \"cortex configure\"."
)


class CortexError(Exception):
    """Base class for all CLI errors."""


class ConfigError(CortexError):
    """The local configuration is missing, unreadable or invalid."""


class ConfigNotFoundError(ConfigError):
    def __init__(self):
        super().__init__('Please configure the Cortex CLI by running "cortex configure"')


class ConfigParseError(ConfigError):
    def __init__(self, path, reason: str):
        self.path = path
        super().__init__(f"Unable to parse configuration file {path}: {reason}")


class ProfileNotFoundError(ConfigError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f'Profile with name "{name}" could not be located in your configuration. '
            f'Please run "cortex configure".'
        )


class ProfileValidationError(ConfigError):
    """Raised with every violated field, not only the first one."""

    def __init__(self, name: Optional[str], problems: List[str]):
        self.name = name
        self.problems = problems
        details = "; ".join(problems)
        super().__init__(f"Invalid configuration profile <{name}>: {details}. {RECONFIGURE_HINT}")


class CredentialError(CortexError):
    """A token could not be produced from the profile's key material."""


class ApiError(CortexError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class CompatibilityError(CortexError):
    """The cluster's version requirement could not be read or understood."""
