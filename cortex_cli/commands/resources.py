"""
Command groups for REST resources.

Every resource group offers the same three commands (list, describe, delete);
only the collection path and the table columns differ.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
import typer

from cortex_cli.api_client import get_api_client
from cortex_cli.errors import ApiError
from cortex_cli import utils
from cortex_cli.utils import OutputFormat, fatal, print_output, print_success, require_profile, set_output_format

DEFAULT_LIST_LIMIT = 20
DEFAULT_LIST_SKIP = 0


@dataclass
class ResourceType:
    name: str
    title: str
    path: str
    columns: List[str] = field(default_factory=lambda: ["name", "title", "description"])

    @property
    def project_scoped(self) -> bool:
        return "{project}" in self.path

    def collection_path(self, project: Optional[str]) -> str:
        if self.project_scoped:
            if not project:
                fatal(
                    f"A project is required to work with {self.name}. "
                    f"Use --project or run \"cortex configure --project <project>\"."
                )
            return self.path.format(project=project)
        return self.path


def _project_resource(name: str, title: str, columns: Optional[List[str]] = None) -> ResourceType:
    resource = ResourceType(name=name, title=title, path=f"projects/{{project}}/{name}")
    if columns:
        resource.columns = columns
    return resource


RESOURCE_TYPES: Dict[str, ResourceType] = {
    resource.name: resource for resource in [
        ResourceType("projects", "Projects", "projects"),
        ResourceType("roles", "Roles", "roles", columns=["role", "description"]),
        ResourceType("users", "Users", "users", columns=["username", "roles"]),
        ResourceType("assessments", "Impact Assessments", "impactassessment/assessments",
                     columns=["name", "title", "componentName", "reportCount"]),
        _project_resource("campaigns", "Campaigns", ["name", "title", "lifecycleState"]),
        _project_resource("missions", "Missions", ["name", "title", "lifecycleState"]),
        _project_resource("connections", "Connections", ["name", "title", "connectionType"]),
        _project_resource("content", "Managed Content", ["Key", "Size", "LastModified"]),
        _project_resource("secrets", "Secrets", ["name"]),
        _project_resource("experiments", "Experiments", ["name", "title", "modelId"]),
        _project_resource("models", "Models", ["name", "title", "type", "status"]),
        _project_resource("actions", "Actions", ["name", "title", "type", "image"]),
        _project_resource("agents", "Agents"),
        _project_resource("sessions", "Sessions", ["sessionId", "ttl", "description"]),
        _project_resource("skills", "Skills"),
        _project_resource("tasks", "Tasks", ["name", "actionName", "skillName", "state"]),
        _project_resource("types", "Types"),
        _project_resource("pipelines", "Pipelines", ["name", "title", "gitRepoName"]),
    ]
}


def extract_items(data: Any, key: str) -> List[Dict[str, Any]]:
    """Pull the list of items out of a list response, wrapped or not."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for candidate in (key, "items", "result", "data"):
            value = data.get(candidate)
            if isinstance(value, list):
                return value
    return []


def _call(description: str, fn, *args, **kwargs) -> httpx.Response:
    try:
        return fn(*args, **kwargs)
    except httpx.ConnectError:
        fatal(f"Failed to {description}: cannot connect to the Cortex API.")
    except (httpx.HTTPError, ApiError) as e:
        fatal(f"Failed to {description}: {e}")


def create_resource_app(resource: ResourceType) -> typer.Typer:
    """Build the list/describe/delete command group for ``resource``."""
    app = typer.Typer(help=f"Work with Cortex {resource.title}", no_args_is_help=True)

    @app.command(name="list", help=f"List {resource.title.lower()}.")
    def list_resources(
        ctx: typer.Context,
        profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use"),
        project: Optional[str] = typer.Option(None, "--project", help="The project to use"),
        limit: int = typer.Option(DEFAULT_LIST_LIMIT, "--limit", help="Limit number of records"),
        skip: int = typer.Option(DEFAULT_LIST_SKIP, "--skip", help="Skip number of records"),
        filter: Optional[str] = typer.Option(None, "--filter", help="A Mongo style filter to use"),
        sort: Optional[str] = typer.Option(None, "--sort", help="A Mongo style sort statement"),
        output: Optional[OutputFormat] = typer.Option(None, "--output", "-o", help="Output format")
    ):
        if output:
            set_output_format(output)
        resolved = require_profile(ctx, profile)
        path = resource.collection_path(project or resolved.project)

        params = {"limit": limit, "skip": skip, "filter": filter, "sort": sort}
        params = {key: value for key, value in params.items() if value is not None}
        client = get_api_client(resolved)
        response = _call(f"list {resource.name}", client.list_resources, path, params)

        if response.status_code != 200:
            fatal(f"Failed to list {resource.name}: {response.status_code} {response.text}")

        print_output(extract_items(response.json(), resource.name), columns=resource.columns, title=resource.title)

    @app.command(help=f"Describe one of the {resource.title.lower()}.")
    def describe(
        ctx: typer.Context,
        name: str = typer.Argument(..., help="Name of the resource"),
        profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use"),
        project: Optional[str] = typer.Option(None, "--project", help="The project to use"),
        output: Optional[OutputFormat] = typer.Option(None, "--output", "-o", help="Output format")
    ):
        if output:
            set_output_format(output)
        elif utils.current_output_format in (OutputFormat.TABLE, OutputFormat.TEXT):
            set_output_format(OutputFormat.JSON)
        resolved = require_profile(ctx, profile)
        path = resource.collection_path(project or resolved.project)

        client = get_api_client(resolved)
        response = _call(f"describe {name}", client.get_resource, path, name)

        if response.status_code != 200:
            fatal(f"Failed to describe {name}: {response.status_code} {response.text}")

        print_output(response.json())

    @app.command(help=f"Delete one of the {resource.title.lower()}.")
    def delete(
        ctx: typer.Context,
        name: str = typer.Argument(..., help="Name of the resource"),
        profile: Optional[str] = typer.Option(None, "--profile", help="The profile to use"),
        project: Optional[str] = typer.Option(None, "--project", help="The project to use"),
        yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation prompt")
    ):
        resolved = require_profile(ctx, profile)
        path = resource.collection_path(project or resolved.project)

        if not yes and not typer.confirm(f"Delete {name} from {resource.name}?"):
            return

        client = get_api_client(resolved)
        response = _call(f"delete {name}", client.delete_resource, path, name)

        if response.status_code in (200, 204):
            print_success(f"Deleted {name}.")
        elif response.status_code == 404:
            fatal(f"{name} not found in {resource.name}")
        else:
            fatal(f"Failed to delete {name}: {response.status_code} {response.text}")

    return app
