"""
Injection markers for constructor dependencies.
"""

from dataclasses import dataclass, field
from typing import Optional, Type


@dataclass
class Inject:
    """
    Injection metadata marker.

    Usage:
        def __init__(self, repo: Annotated[UserRepo, Inject(tag="repo")]):
            ...

        def __init__(self, dep: Annotated[Any, Inject("SomeDependency")]):
            ...
    """

    token: Optional[Type | str] = None
    tag: Optional[str] = None
    optional: bool = False

    # Internal marker for provider introspection
    _inject_token: Optional[Type | str] = field(default=None, repr=False)
    _inject_tag: Optional[str] = field(default=None, repr=False)
    _inject_optional: bool = field(default=False, repr=False)

    def __post_init__(self):
        self._inject_token = self.token
        self._inject_tag = self.tag
        self._inject_optional = self.optional


def inject(
    token: Optional[Type | str] = None,
    *,
    tag: Optional[str] = None,
    optional: bool = False,
) -> Inject:
    """
    Create injection metadata.

    Example:
        def __init__(
            self,
            db: Annotated[Database, inject(tag="readonly")],
            cache: Annotated[Cache, inject(optional=True)],
        ):
            ...
    """
    return Inject(token=token, tag=tag, optional=optional)
