"""
Path and import helpers.
"""

import importlib
from typing import Any


def join_paths(*parts: str) -> str:
    """
    Join URL path segments into a single absolute path.

    Duplicate slashes collapse and empty segments are skipped. A trailing
    slash on the last non-empty segment is preserved.

    Example:
        join_paths("/", "/api/", "order") -> "/api/order"
        join_paths("/api", "/order", "/") -> "/api/order/"
    """
    clean_parts = [part.strip("/") for part in parts if part]
    joined = "/" + "/".join(p for p in clean_parts if p)

    non_empty = [part for part in parts if part]
    if non_empty and non_empty[-1].endswith("/") and joined != "/":
        joined += "/"

    return joined


def normalize_path(path: str) -> str:
    """Collapse repeated slashes; an empty path becomes ``/``."""
    if not path:
        return "/"
    while "//" in path:
        path = path.replace("//", "/")
    if not path.startswith("/"):
        path = "/" + path
    return path


def import_from_string(target: str) -> Any:
    """
    Import ``"package.module:attribute"``.

    The attribute part may be dotted (``"app:factory.server"``). Without a
    colon the module itself is returned.
    """
    module_name, _, attr_path = target.partition(":")
    if not module_name:
        raise ImportError(f"Invalid import target {target!r}; expected 'module:attribute'")

    obj = importlib.import_module(module_name)
    if attr_path:
        for attr in attr_path.split("."):
            try:
                obj = getattr(obj, attr)
            except AttributeError:
                raise ImportError(
                    f"Attribute {attr_path!r} not found in module {module_name!r}"
                ) from None
    return obj
