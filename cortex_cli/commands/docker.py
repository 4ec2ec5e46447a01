import logging
import subprocess
from typing import Optional

import typer

from cortex_cli.utils import fatal, print_success, require_profile

app = typer.Typer(help="Work with Docker", no_args_is_help=True)
logger = logging.getLogger(__name__)


def registry_url_for(profile, registry: Optional[str] = None) -> str:
    """The explicit registry, else the profile's current registry."""
    if registry:
        return registry
    current = profile.registries.get(profile.current_registry)
    if current is None:
        fatal(f"Registry {profile.current_registry} is not configured for profile {profile.name}")
    return current.url


@app.command()
def login(
    ctx: typer.Context,
    profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use"),
    registry: Optional[str] = typer.Option(None, "--registry", help="Registry to log in to (defaults to the current registry)")
):
    """Log docker in to the Cortex private registry."""
    resolved = require_profile(ctx, profile)
    url = registry_url_for(resolved, registry)

    logger.debug("docker login %s", url)
    try:
        result = subprocess.run(
            ["docker", "login", "-u", "cli", "--password-stdin", url],
            input=resolved.token,
            capture_output=True,
            text=True
        )
    except FileNotFoundError:
        fatal("Failed to docker login: docker executable not found")

    if result.returncode != 0:
        fatal(f"Failed to docker login: {result.stderr.strip() or result.stdout.strip()}")
    print_success("Login Succeeded")
