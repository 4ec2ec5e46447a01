"""
Cortex CLI Commands

Organized command modules for:
- configure: Profiles and personal access tokens
- resources: list/describe/delete groups for REST resources
- workspaces: Docker registry management for a profile
- docker: docker login against the current registry
- deploy: Export resources for deployment
"""

from cortex_cli.commands import configure
from cortex_cli.commands import deploy
from cortex_cli.commands import docker
from cortex_cli.commands import resources
from cortex_cli.commands import workspaces

__all__ = [
    "configure",
    "deploy",
    "docker",
    "resources",
    "workspaces"
]
