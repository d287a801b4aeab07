"""Route report command.

Loads a container (or a server / application holding one) from an import
string and prints the controller route report.
"""

from typing import Any, Dict, List

import click
import orjson

from ...app import Application
from ...debug import get_route_info
from ...di import Container
from ...server import Server
from ...utils import import_from_string
from ..utils.colors import section, table, warning


def load_container(target: str) -> Container:
    """
    Import ``target`` and return the container behind it.

    Zero-argument factories are called once.

    Raises:
        click.BadParameter: The target holds no container
    """
    try:
        obj = import_from_string(target)
    except ImportError as e:
        raise click.BadParameter(str(e), param_hint="TARGET")

    if callable(obj) and not isinstance(obj, (Container, Server, Application)):
        obj = obj()

    if isinstance(obj, Container):
        return obj
    if isinstance(obj, (Server, Application)):
        return obj.container

    raise click.BadParameter(
        f"{target!r} is a {type(obj).__name__}, expected a Container, Server or Application",
        param_hint="TARGET",
    )


def render_json(report: List[Dict[str, Any]], indent: bool = True) -> str:
    option = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(report, option=option).decode("utf-8")


def render_table(report: List[Dict[str, Any]]) -> None:
    if not report:
        warning("No controllers declared")
        return

    for entry in report:
        section(entry["controller"])
        rows = [
            (endpoint["route"], ", ".join(endpoint.get("args", ())))
            for endpoint in entry["endpoints"]
        ]
        table(("Route", "Args"), rows)
        click.echo()


def show_routes(target: str, fmt: str = "json", indent: bool = True) -> List[Dict[str, Any]]:
    """Print the route report for ``target`` and return it."""
    report = get_route_info(load_container(target))

    if fmt == "table":
        render_table(report)
    else:
        click.echo(render_json(report, indent=indent))

    return report
