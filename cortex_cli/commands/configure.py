import json
import logging
from pathlib import Path
from typing import Optional

import typer

from cortex_cli.config import (
    CORTEX_REGISTRY_NAME,
    cortex_registry_for,
    default_config,
    default_template_config,
    read_config,
)
from cortex_cli.credentials import fetch_info_for_profile
from cortex_cli.errors import CortexError
from cortex_cli.resolver import DEFAULT_PROFILE_NAME, get_configured_profile
from cortex_cli.utils import OutputFormat, fatal, print_output, print_success, require_profile, set_output_format

app = typer.Typer(invoke_without_command=True, help="Configure the Cortex CLI")
logger = logging.getLogger(__name__)


def _read_config_or_exit(required: bool = True):
    try:
        config = read_config()
    except CortexError as e:
        fatal(str(e))
    if config is None and required:
        fatal('Configuration not found. Please run "cortex configure".')
    return config


def _read_access_token(path: Path) -> dict:
    try:
        data = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        fatal(f"Unable to read personal access token {path}: {e}")
    if not isinstance(data, dict):
        fatal(f"Personal access token {path} must contain a JSON object")
    return data


def build_profile_attrs(pat: dict, existing: Optional[dict] = None, project: Optional[str] = None) -> dict:
    """Merge a personal access token into an existing profile's settings."""
    existing = existing or {}
    url = (pat.get("url") or "").rstrip("/")

    registries = dict(existing.get("registries") or {})
    registries[CORTEX_REGISTRY_NAME] = cortex_registry_for(url)
    current_registry = existing.get("currentRegistry")
    if current_registry not in registries:
        current_registry = CORTEX_REGISTRY_NAME

    attrs = {
        "url": url or None,
        "username": pat.get("username"),
        "jwk": pat.get("jwk"),
        "issuer": pat.get("issuer"),
        "audience": pat.get("audience"),
        "project": project or existing.get("project"),
        "registries": registries,
        "currentRegistry": current_registry,
        "templateConfig": existing.get("templateConfig") or default_template_config(),
    }
    # Missing values are reported by validation as required fields
    return {key: value for key, value in attrs.items() if value is not None}


@app.callback()
def configure(
    ctx: typer.Context,
    file: Optional[Path] = typer.Option(None, "--file", "-f", help="Personal access token file downloaded from the Cortex Console"),
    profile: Optional[str] = typer.Option(None, "--profile", help="The profile to configure"),
    project: Optional[str] = typer.Option(None, "--project", help="Default project for the profile")
):
    """Configure the Cortex CLI from a personal access token."""
    if ctx.invoked_subcommand is not None:
        return

    config = _read_config_or_exit(required=False) or default_config()
    profile_name = profile or config.current_profile or DEFAULT_PROFILE_NAME

    typer.echo(f"Configuring profile {profile_name}:")
    if file is None:
        file = Path(typer.prompt("Personal access token file"))
    pat = _read_access_token(file.expanduser())

    attrs = build_profile_attrs(pat, config.profiles.get(profile_name), project)
    try:
        config.set_profile(profile_name, attrs)
    except CortexError as e:
        fatal(str(e))

    config.current_profile = profile_name
    config.save()
    logger.debug("Saved profile %s for %s", profile_name, attrs.get("url"))
    print_success(f"Configuration for profile {profile_name} saved.")


@app.command(name="list")
def list_profiles():
    """List configured profiles."""
    config = _read_config_or_exit()
    for name in config.profiles:
        if name == config.current_profile:
            typer.echo(f"{name} [active]")
        else:
            typer.echo(name)


@app.command()
def describe(
    profile_name: Optional[str] = typer.Argument(None, help="Profile to describe (defaults to the current profile)"),
    output: Optional[OutputFormat] = typer.Option(None, "--output", "-o", help="Output format")
):
    """Describe a configured profile."""
    if output:
        set_output_format(output)
    config = _read_config_or_exit()
    name = profile_name or config.current_profile or DEFAULT_PROFILE_NAME

    try:
        profile = config.get_profile(name)
    except CortexError as e:
        fatal(str(e))
    if profile is None:
        fatal(f"No profile named {name}. Run cortex configure --profile {name} to create it.")

    print_output({
        "profile": name,
        "url": profile.url,
        "username": profile.username,
        "project": profile.project,
        "registry": profile.current_registry,
    })


@app.command(name="set-profile")
def set_profile(profile_name: str = typer.Argument(..., help="Profile to make current")):
    """Sets the current profile."""
    config = _read_config_or_exit()
    if profile_name not in config.profiles:
        fatal(f"No profile named {profile_name}. Run cortex configure --profile {profile_name} to create it.")

    config.current_profile = profile_name
    config.save()
    print_success(f"Current profile set to {profile_name}")


@app.command()
def token(
    profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use"),
    ttl: str = typer.Option("1d", "--ttl", help="Token lifetime, for example 30m, 12h or 1d")
):
    """Print a freshly signed access token."""
    try:
        resolved = get_configured_profile(profile, use_env=True)
        info = fetch_info_for_profile(resolved, expires_in=ttl)
    except CortexError as e:
        fatal(str(e))
    typer.echo(info.jwt)


@app.command()
def env(
    ctx: typer.Context,
    profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use")
):
    """Print shell exports for the profile's URL, token and project."""
    resolved = require_profile(ctx, profile)
    typer.echo(f"export CORTEX_URL={resolved.url}")
    typer.echo(f"export CORTEX_TOKEN={resolved.token}")
    if resolved.project:
        typer.echo(f"export CORTEX_PROJECT={resolved.project}")
