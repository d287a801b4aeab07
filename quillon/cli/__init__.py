"""
Quillon CLI.

Usage:
    quillon routes <module:attr>
    quillon serve <module:attr>

``<module:attr>`` names a Container, a Server, an Application or a
zero-argument factory returning one of them.
"""

from .. import __version__

__cli_name__ = "quillon"


def main():
    """Wrapper to avoid eager import of __main__ which causes warnings with -m."""
    from .__main__ import main as _main
    return _main()
