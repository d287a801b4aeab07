"""Quillon CLI - Main Entry Point.

Commands:
    routes   - Print the controller route report
    serve    - Run an application with uvicorn
"""

import sys
from typing import Optional

import click

from . import __version__, __cli_name__
from .utils.colors import error, _CROSS


class QuillonGroup(click.Group):
    """Click group listing commands in aligned columns."""

    def format_commands(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        commands = []
        for subcommand in self.list_commands(ctx):
            cmd = self.get_command(ctx, subcommand)
            if cmd is None or cmd.hidden:
                continue
            commands.append((subcommand, cmd.get_short_help_str(limit=48)))

        if commands:
            with formatter.section(click.style("Commands", fg="cyan", bold=True)):
                max_len = max(len(name) for name, _ in commands) + 2
                for name, help_text in commands:
                    formatter.write(f"  {click.style(name.ljust(max_len), fg='green')} {help_text}\n")


@click.group(cls=QuillonGroup)
@click.version_option(version=__version__, prog_name=__cli_name__)
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, verbose: bool):
    """Metadata-driven controllers for async Python web apps.

    \b
    Quick start:
      quillon routes myapp.main:container
      quillon serve myapp.main:server
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose


@cli.command('routes')
@click.argument('target')
@click.option('--format', 'fmt', type=click.Choice(['json', 'table']), default='json',
              show_default=True, help='Output format')
@click.option('--indent/--no-indent', default=True, help='Indent JSON output')
def routes(target: str, fmt: str, indent: bool):
    """
    Print the controller route report.

    Examples:
      quillon routes myapp.main:container
      quillon routes myapp.main:server --format=table
    """
    from .commands.routes import show_routes

    show_routes(target, fmt=fmt, indent=indent)


@cli.command('serve')
@click.argument('target')
@click.option('--host', type=str, default=None, help='Bind host (default: from config)')
@click.option('--port', type=int, default=None, help='Bind port (default: from config)')
@click.option('--env-file', type=click.Path(dir_okay=False), default=None, help='.env file to load')
@click.option('--reload', is_flag=True, help='Reload on code changes')
@click.pass_context
def serve(ctx, target: str, host: Optional[str], port: Optional[int], env_file: Optional[str], reload: bool):
    """
    Run an application with uvicorn.

    Examples:
      quillon serve myapp.main:server
      quillon serve myapp.main:app --port=9000 --reload
    """
    from .commands.serve import serve as _serve
    from ..config import ConfigError
    from ..faults import Fault

    try:
        _serve(
            target,
            host=host,
            port=port,
            env_file=env_file,
            reload=reload,
            verbose=ctx.obj['verbose'],
        )
    except (ConfigError, Fault) as e:
        error(f"  {_CROSS} {e}")
        sys.exit(1)


def main():
    """Entry point for `quillon` command."""
    cli(obj={})


if __name__ == '__main__':
    main()
