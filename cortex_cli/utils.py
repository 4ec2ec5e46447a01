import logging
from enum import Enum
from typing import Any, List, Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

console = Console()
err_console = Console(stderr=True)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class OutputFormat(str, Enum):
    JSON = "json"
    TABLE = "table"
    TEXT = "text"
    YAML = "yaml"


# Global state for output format
current_output_format = OutputFormat.TABLE


def set_output_format(format: OutputFormat):
    global current_output_format
    current_output_format = format


def setup_logging(debug: bool = False):
    """Configure the cortex_cli loggers. DEBUG with --debug, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        force=True
    )


def print_success(message: str):
    console.print(message, style="green", markup=False, soft_wrap=True)


def print_warning(message: str):
    err_console.print(message, style="yellow", markup=False, soft_wrap=True)


def print_notice(message: str):
    err_console.print(message, style="dim", markup=False, soft_wrap=True)


def print_error(message: str):
    err_console.print(message, style="red", markup=False, highlight=False, soft_wrap=True)


def fatal(message: str, code: int = 1):
    """Print a single red line on stderr and exit."""
    print_error(message)
    raise typer.Exit(code)


def format_column_name(col: str) -> str:
    """Format column name for display with proper capitalization."""
    parts = col.lstrip('_').split('_')
    formatted_parts = []
    for part in parts:
        if part.upper() == 'ID':
            formatted_parts.append('ID')
        else:
            formatted_parts.append(part[:1].upper() + part[1:])
    return ' '.join(formatted_parts)


def print_output(data: Any, columns: Optional[List[str]] = None, title: Optional[str] = None):
    """
    Print data in the selected format.

    Args:
        data: The data to print (list of dicts or single dict)
        columns: List of column names for table/text output
        title: Title for the table
    """
    if current_output_format == OutputFormat.JSON:
        console.print_json(data=data)
        return

    if current_output_format == OutputFormat.YAML:
        yaml_str = yaml.safe_dump(data, sort_keys=False)
        syntax = Syntax(yaml_str, "yaml", theme="monokai", line_numbers=False)
        console.print(syntax)
        return

    # Ensure data is a list for table/text processing
    if isinstance(data, dict):
        data = [data]

    if not columns:
        if data:
            columns = list(data[0].keys())
        else:
            console.print("No data found.")
            return

    if current_output_format == OutputFormat.TABLE:
        table = Table(title=title)
        for col in columns:
            table.add_column(format_column_name(col), style="cyan")
    else:
        # Aligned text output using rich Table with no borders
        table = Table(box=None, show_header=True, padding=(0, 2, 0, 0), title=None, pad_edge=False)
        for col in columns:
            table.add_column(format_column_name(col), header_style="bold")

    for item in data or []:
        table.add_row(*[_cell(item.get(col)) for col in columns])

    console.print(table)


def _cell(value: Any) -> str:
    if value is None or value == "":
        return "-"
    return str(value)


def require_profile(ctx: Optional[typer.Context] = None, profile_name: Optional[str] = None, use_env: bool = True,
                    quiet: bool = False):
    """Load a profile for a command, exiting with a red error line on failure."""
    from cortex_cli.errors import CortexError
    from cortex_cli.resolver import load_profile

    side_loaded = getattr(getattr(ctx, "obj", None), "side_loaded", None)
    try:
        return load_profile(profile_name, use_env=use_env, side_loaded=side_loaded, quiet=quiet)
    except CortexError as e:
        logging.getLogger(__name__).debug("Profile resolution failed", exc_info=True)
        fatal(str(e))
