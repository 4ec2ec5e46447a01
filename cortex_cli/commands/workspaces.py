from typing import Optional

import typer

from cortex_cli.config import read_config
from cortex_cli.errors import CortexError
from cortex_cli.resolver import DEFAULT_PROFILE_NAME
from cortex_cli.utils import OutputFormat, fatal, print_output, print_success, set_output_format

app = typer.Typer(help="Work with Cortex workspaces and docker registries", no_args_is_help=True)


def _load(profile_name: Optional[str]):
    """Return the config and the stored (not server-resolved) profile."""
    try:
        config = read_config()
        if config is None:
            fatal('Configuration not found. Please run "cortex configure".')
        name = profile_name or config.current_profile or DEFAULT_PROFILE_NAME
        profile = config.get_profile(name)
    except CortexError as e:
        fatal(str(e))
    if profile is None:
        fatal(f"No profile named {name}. Run cortex configure --profile {name} to create it.")
    return config, profile


def _store(config, profile):
    try:
        config.set_profile(profile.name, profile.to_json())
    except CortexError as e:
        fatal(str(e))
    config.save()


@app.command(name="list-registry")
def list_registry(
    profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use"),
    output: Optional[OutputFormat] = typer.Option(None, "--output", "-o", help="Output format")
):
    """List configured docker registries."""
    if output:
        set_output_format(output)
    _, resolved = _load(profile)

    rows = []
    for name, registry in resolved.registries.items():
        rows.append({
            "name": name,
            "url": registry.url,
            "namespace": registry.namespace,
            "active": "*" if name == resolved.current_registry else "",
        })
    print_output(rows, columns=["name", "url", "namespace", "active"], title="Registries")


@app.command(name="add-registry")
def add_registry(
    name: str = typer.Argument(..., help="Name for the registry"),
    url: str = typer.Option("docker.io", "--url", help="Registry URL"),
    namespace: Optional[str] = typer.Option(None, "--namespace", help="Registry namespace"),
    profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use")
):
    """Add a docker registry to the profile."""
    config, resolved = _load(profile)
    existing = resolved.registries.get(name)
    if existing is not None and existing.is_cortex:
        fatal(f"Registry {name} is managed by Cortex and cannot be replaced")

    registry = {"name": name, "url": url}
    if namespace:
        registry["namespace"] = namespace
    data = resolved.to_json()
    data["registries"][name] = registry
    try:
        config.set_profile(resolved.name, data)
    except CortexError as e:
        fatal(str(e))
    config.save()
    print_success(f"Registry {name} added")


@app.command(name="remove-registry")
def remove_registry(
    name: str = typer.Argument(..., help="Registry to remove"),
    profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use")
):
    """Remove a docker registry from the profile."""
    config, resolved = _load(profile)
    registry = resolved.registries.get(name)
    if registry is None or registry.is_cortex:
        fatal(f"Registry {name} not found")

    del resolved.registries[name]
    if resolved.current_registry == name:
        cortex = [key for key, value in resolved.registries.items() if value.is_cortex]
        resolved.current_registry = cortex[0] if cortex else next(iter(resolved.registries), "")
    _store(config, resolved)
    print_success(f"Registry {name} removed")


@app.command(name="activate-registry")
def activate_registry(
    name: str = typer.Argument(..., help="Registry to activate"),
    profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use")
):
    """Set the registry images are pushed to."""
    config, resolved = _load(profile)
    if name not in resolved.registries:
        fatal(f"Registry {name} not found")

    resolved.current_registry = name
    _store(config, resolved)
    print_success(f"Registry {name} activated")
