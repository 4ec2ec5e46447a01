"""
Root command dispatcher.

Profile resolution happens once per invocation, before the Typer app is
built, so only the subcommands enabled for the profile are registered.
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

import typer

from cortex_cli import __version__
from cortex_cli.commands import configure as configure_commands
from cortex_cli.commands import deploy as deploy_commands
from cortex_cli.commands import docker as docker_commands
from cortex_cli.commands import workspaces as workspaces_commands
from cortex_cli.commands.resources import RESOURCE_TYPES, create_resource_app
from cortex_cli.compatibility import check_compatibility
from cortex_cli.errors import CortexError
from cortex_cli.features import FeatureController, all_subcommands
from cortex_cli.resolver import SideLoaded, resolve_profile
from cortex_cli.settings import get_settings
from cortex_cli.utils import OutputFormat, fatal, require_profile, set_output_format, setup_logging

logger = logging.getLogger(__name__)


@dataclass
class SubcommandDescriptor:
    name: str
    help: str
    factory: Callable[[], typer.Typer]


@dataclass
class CliState:
    """Passed to every command as ``ctx.obj``."""
    side_loaded: Optional[SideLoaded] = None
    supported: List[str] = field(default_factory=all_subcommands)


def _resource_descriptor(name: str) -> SubcommandDescriptor:
    resource = RESOURCE_TYPES[name]
    return SubcommandDescriptor(name, f"Work with Cortex {resource.title}", lambda: create_resource_app(resource))


SUBCOMMANDS: Dict[str, SubcommandDescriptor] = {
    "configure": SubcommandDescriptor("configure", "Configure the Cortex CLI", lambda: configure_commands.app),
    "workspaces": SubcommandDescriptor(
        "workspaces", "Work with Cortex workspaces and docker registries", lambda: workspaces_commands.app
    ),
    "docker": SubcommandDescriptor("docker", "Work with Docker", lambda: docker_commands.app),
    "deploy": SubcommandDescriptor(
        "deploy", "Work with Cortex Artifacts export for deployment", lambda: deploy_commands.app
    ),
}
for _name in RESOURCE_TYPES:
    SUBCOMMANDS.setdefault(_name, _resource_descriptor(_name))


def dispatch() -> CliState:
    """Resolve the active profile and work out which subcommands to expose."""
    if get_settings().skip_init_profile:
        logger.debug("CORTEX_SKIP_INIT_PROFILE set, exposing all subcommands")
        return CliState()

    # Commands print the $CORTEX_TOKEN notice when they resolve again
    result = resolve_profile(quiet=True)
    if not result.ok or result.profile.feature_flags is None:
        logger.debug("No usable profile (%s), exposing all subcommands", result.error)
        return CliState()

    profile = result.profile
    return CliState(
        side_loaded=SideLoaded.from_profile(profile),
        supported=FeatureController(profile).get_supported_subcommands()
    )


def version_callback(value: bool):
    if value:
        typer.echo(f"Cortex CLI version {__version__}")
        raise typer.Exit()


def ensure_compatible(ctx: typer.Context):
    """Exit unless the installed CLI satisfies the cluster's version range."""
    profile = require_profile(ctx, quiet=True)
    try:
        result = check_compatibility(profile)
    except CortexError as e:
        fatal(str(e))
    if not result.satisfied:
        fatal(
            f"Update required: cortex-cli {result.current} does not satisfy {result.required}. "
            f"Run \"pip install --upgrade cortex-cli\" to update"
        )
    logger.debug("cortex-cli %s satisfies %s", result.current, result.required)


def create_app(supported: Optional[List[str]] = None) -> typer.Typer:
    """Build the root app with only the ``supported`` subcommand groups."""
    app = typer.Typer(
        name="cortex",
        help="Cortex CLI - work with the Cortex platform",
        add_completion=False,
        no_args_is_help=True
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        version: bool = typer.Option(
            None, "--version", "-v",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit"
        ),
        debug: bool = typer.Option(False, "--debug", help="Log debug output to stderr"),
        output: Optional[OutputFormat] = typer.Option(
            None,
            "--output",
            "-o",
            help="Output format: table, text, json, yaml. Default: table"
        ),
        compat: bool = typer.Option(False, "--compat", help="Check that this CLI version is supported by the cluster")
    ):
        """
        Cortex CLI

        Configure profiles and manage resources on a Cortex cluster.
        """
        if debug:
            setup_logging(True)
        if output is not None:
            set_output_format(output)
        if compat:
            ensure_compatible(ctx)

    names = supported if supported is not None else all_subcommands()
    for name in dict.fromkeys(names):
        descriptor = SUBCOMMANDS.get(name)
        if descriptor is None:
            logger.debug("No command group for subcommand %s", name)
            continue
        app.add_typer(descriptor.factory(), name=descriptor.name, help=descriptor.help)

    return app


def main():
    setup_logging(get_settings().debug or "--debug" in sys.argv[1:])
    state = dispatch()
    create_app(state.supported)(obj=state)


if __name__ == "__main__":
    main()
