"""Development / production server command.

Builds the application behind an import string and runs it with uvicorn.
Settings come from ServerConfig (``.env`` file and QUILLON_* environment
variables); command-line options override them.
"""

import logging
from typing import Any, Optional

import click

from ...app import Application
from ...config import ConfigLoader, ServerConfig
from ...server import Server
from ...utils import import_from_string
from ..utils.colors import info, kv


def load_settings(env_file: Optional[str] = None, **overrides: Any) -> ServerConfig:
    """ServerConfig from the environment, with non-None ``overrides`` applied."""
    server_overrides = {key: value for key, value in overrides.items() if value is not None}
    loader = ConfigLoader.load(
        env_file=env_file,
        overrides={"server": server_overrides} if server_overrides else None,
    )
    return ServerConfig.from_loader(loader)


def load_app(target: str) -> Application:
    """
    Import ``target`` and turn it into an Application.

    A Server is built; a zero-argument factory is called first.

    Raises:
        click.BadParameter: The target is not an application source
    """
    try:
        obj = import_from_string(target)
    except ImportError as e:
        raise click.BadParameter(str(e), param_hint="TARGET")

    if callable(obj) and not isinstance(obj, (Application, Server)):
        obj = obj()

    if isinstance(obj, Server):
        obj = obj.build()

    if not isinstance(obj, Application):
        raise click.BadParameter(
            f"{target!r} is a {type(obj).__name__}, expected an Application or Server",
            param_hint="TARGET",
        )
    return obj


def serve(
    target: str,
    host: Optional[str] = None,
    port: Optional[int] = None,
    env_file: Optional[str] = None,
    reload: bool = False,
    verbose: bool = False,
) -> None:
    """
    Start uvicorn for ``target``.

    With ``reload`` uvicorn re-imports ``target`` itself, so it must name
    an Application.
    """
    import uvicorn

    settings = load_settings(env_file, host=host, port=port)
    log_level = "debug" if verbose else settings.log_level

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    if reload:
        if not isinstance(import_from_string(target), Application):
            raise click.UsageError("--reload needs TARGET to name an Application")
        app: Any = target
    else:
        app = load_app(target)

    info(f"Serving {target}")
    kv("Host", settings.host)
    kv("Port", str(settings.port))
    kv("Reload", "on" if reload else "off")

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        reload=reload,
        log_level=log_level,
    )
