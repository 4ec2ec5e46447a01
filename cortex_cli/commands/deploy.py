import json
from pathlib import Path
from typing import Optional

import httpx
import typer
import yaml

from cortex_cli.api_client import get_api_client
from cortex_cli.commands.resources import RESOURCE_TYPES
from cortex_cli.errors import ApiError
from cortex_cli.utils import fatal, print_success, require_profile

app = typer.Typer(help="Work with Cortex Artifacts export for deployment", no_args_is_help=True)


@app.command(name="export")
def export(
    ctx: typer.Context,
    resource_type: str = typer.Argument(..., help="Resource type (agents, skills, actions, ...)"),
    name: str = typer.Argument(..., help="Resource name"),
    profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use"),
    project: Optional[str] = typer.Option(None, "--project", help="The project to use"),
    directory: Path = typer.Option(Path("deploy"), "--dir", help="Directory to export into"),
    use_yaml: bool = typer.Option(False, "-y", "--yaml", help="Use YAML for the export format"),
    force: bool = typer.Option(False, "-f", "--force", help="Overwrite existing exported files")
):
    """Export a resource definition for deployment."""
    resource = RESOURCE_TYPES.get(resource_type)
    if resource is None:
        fatal(f"Unknown resource type: {resource_type}. Valid types: {', '.join(sorted(RESOURCE_TYPES))}")

    resolved = require_profile(ctx, profile)
    path = resource.collection_path(project or resolved.project)

    target = directory / resource.name / f"{name}.{'yaml' if use_yaml else 'json'}"
    if target.exists() and not force:
        fatal(f"{target} already exists. Use --force to overwrite it.")

    try:
        response = get_api_client(resolved).get_resource(path, name)
    except (httpx.HTTPError, ApiError) as e:
        fatal(f"Failed to export {name}: {e}")
    if response.status_code != 200:
        fatal(f"Failed to export {name}: {response.status_code} {response.text}")

    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w") as f:
        if use_yaml:
            yaml.safe_dump(response.json(), f, sort_keys=False)
        else:
            json.dump(response.json(), f, indent=2)
    print_success(f"Exported {resource_type} {name} to {target}")
