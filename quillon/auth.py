"""
Authentication context.

An AuthProvider turns a request into a Principal. The resolver asks it
once per request and stores the answer on the HTTP context, where
controllers read it as ``self.http_context.user`` or through the
``principal()`` parameter marker.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional, Type, Union, TYPE_CHECKING
import inspect
import logging

from .controller.base import AUTH_PROVIDER, HttpContext

if TYPE_CHECKING:
    from .di import Container
    from .request import Request
    from .response import Response

logger = logging.getLogger("quillon.auth")


class Principal(ABC):
    """
    The identity behind a request.

    ``details`` carries whatever the auth provider knows about the caller.
    """

    def __init__(self, details: Any = None):
        self.details = details

    @abstractmethod
    async def is_authenticated(self) -> bool:
        ...

    @abstractmethod
    async def is_resource_owner(self, resource_id: Any) -> bool:
        ...

    @abstractmethod
    async def is_in_role(self, role: str) -> bool:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} details={self.details!r}>"


class AuthProvider(ABC):
    """Resolves the Principal for a request."""

    @abstractmethod
    async def get_user(self, request: "Request", response: "Response") -> Optional[Principal]:
        ...


class AuthContextResolver:
    """
    Fills ``ctx.user`` from an auth provider, once per request.

    ``provider`` may be an instance, shared by all requests, or a class,
    bound under ``AUTH_PROVIDER`` in request scope so each request gets a
    fresh, constructor-injected provider.
    """

    def __init__(self, provider: Union[AuthProvider, Type[AuthProvider], None] = None):
        self.provider = provider

    @property
    def provider_is_class(self) -> bool:
        return inspect.isclass(self.provider)

    def install(self, container: "Container") -> None:
        """Bind a provider class into the container if it is not bound yet."""
        if self.provider_is_class and not container.is_registered(AUTH_PROVIDER):
            container.bind(AUTH_PROVIDER, self.provider, scope="request")
            logger.debug("Auth provider %s bound in request scope", self.provider.__name__)

    async def resolve(self, ctx: HttpContext) -> Optional[Principal]:
        if ctx.auth_resolved:
            return ctx.user

        if self.provider is None:
            ctx.user = None
        else:
            if self.provider_is_class:
                provider = await ctx.container.resolve_async(AUTH_PROVIDER)
            else:
                provider = self.provider
            user = provider.get_user(ctx.request, ctx.response)
            if inspect.isawaitable(user):
                user = await user
            ctx.user = user

        ctx.auth_resolved = True
        return ctx.user
