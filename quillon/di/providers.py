"""
Provider implementations for different instantiation strategies.
"""

from typing import Any, Callable, Dict, Optional, Type, TypeVar, get_args, get_origin, Annotated
import inspect

from .core import ProviderMeta, ResolveCtx, token_to_key
from .errors import DIError


T = TypeVar("T")


class ClassProvider:
    """
    Provider that instantiates a class by resolving constructor dependencies.

    Supports async initialisation via the ``async_init()`` convention.
    """

    __slots__ = ("_meta", "_cls", "_dependencies", "_has_async_init")

    def __init__(
        self,
        cls: Type[T],
        scope: str = "app",
        tags: tuple[str, ...] = (),
        token: Optional[Type | str] = None,
    ):
        self._cls = cls
        self._dependencies = self._extract_dependencies(cls)
        self._has_async_init = hasattr(cls, "async_init")

        self._meta = ProviderMeta(
            name=cls.__name__,
            token=token_to_key(token if token is not None else cls),
            scope=scope,
            tags=tags,
            module=cls.__module__,
            qualname=cls.__qualname__,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    @property
    def cls(self) -> Type:
        return self._cls

    async def instantiate(self, ctx: ResolveCtx) -> Any:
        """Instantiate class by resolving dependencies."""
        resolved_deps = {}
        for dep_name, dep_info in self._dependencies.items():
            value = await ctx.container.resolve_async(
                dep_info["token"],
                tag=dep_info.get("tag"),
                optional=dep_info.get("optional", False),
            )
            if value is None and dep_info.get("has_default"):
                continue
            resolved_deps[dep_name] = value

        instance = self._cls(**resolved_deps)

        if self._has_async_init:
            await instance.async_init()

        return instance

    async def shutdown(self) -> None:
        """No-op for class provider (instances handle their own shutdown)."""
        pass

    def _extract_dependencies(self, cls: Type) -> Dict[str, Dict[str, Any]]:
        """
        Extract dependencies from __init__ signature.

        Returns:
            Dict mapping parameter names to dependency info
        """
        deps = {}

        if cls.__init__ is object.__init__:
            return deps

        try:
            sig = inspect.signature(cls.__init__)
        except ValueError:
            return deps

        try:
            type_hints = inspect.get_annotations(cls.__init__, eval_str=True)
        except NameError:
            type_hints = inspect.get_annotations(cls.__init__)

        for param_name, param in sig.parameters.items():
            if param_name in ("self", "cls"):
                continue

            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                continue

            annotation = type_hints.get(param_name, param.annotation)

            if annotation is inspect.Parameter.empty:
                # Defaulted parameters without a hint are left to Python
                if param.default is not inspect.Parameter.empty:
                    continue

                raise DIError(
                    f"Missing type annotation for parameter '{param_name}' "
                    f"in {cls.__qualname__}.__init__"
                )

            dep_info = self._parse_annotation(annotation)
            if param.default is not inspect.Parameter.empty:
                dep_info["optional"] = True
                dep_info["has_default"] = True

            deps[param_name] = dep_info

        return deps

    def _parse_annotation(self, annotation: Any) -> Dict[str, Any]:
        """Parse type annotation for Inject metadata."""
        if get_origin(annotation) is Annotated:
            args = get_args(annotation)
            result: Dict[str, Any] = {"token": args[0]}
            for meta in args[1:]:
                if getattr(meta, "_inject_token", None) is not None:
                    result["token"] = meta._inject_token
                if getattr(meta, "_inject_tag", None) is not None:
                    result["tag"] = meta._inject_tag
                if getattr(meta, "_inject_optional", False):
                    result["optional"] = True
            return result

        return {"token": annotation}


class FactoryProvider:
    """
    Provider that calls a factory function to produce instances.

    Supports both sync and async factories. The factory receives the
    resolving container.
    """

    __slots__ = ("_meta", "_factory", "_is_async")

    def __init__(
        self,
        factory: Callable[..., Any],
        token: Type | str,
        scope: str = "transient",
        tags: tuple[str, ...] = (),
    ):
        self._factory = factory
        self._is_async = inspect.iscoroutinefunction(factory)
        self._meta = ProviderMeta(
            name=getattr(factory, "__name__", "factory"),
            token=token_to_key(token),
            scope=scope,
            tags=tags,
            module=getattr(factory, "__module__", ""),
            qualname=getattr(factory, "__qualname__", ""),
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    async def instantiate(self, ctx: ResolveCtx) -> Any:
        """Call factory with the resolving container."""
        if self._is_async:
            return await self._factory(ctx.container)
        return self._factory(ctx.container)

    async def shutdown(self) -> None:
        pass


class ValueProvider:
    """Provider that returns a pre-bound constant value."""

    __slots__ = ("_meta", "_value")

    def __init__(
        self,
        value: Any,
        token: Type | str,
        name: Optional[str] = None,
        scope: str = "singleton",
        tags: tuple[str, ...] = (),
    ):
        self._value = value
        self._meta = ProviderMeta(
            name=name or "value",
            token=token_to_key(token),
            scope=scope,
            tags=tags,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    @property
    def value(self) -> Any:
        return self._value

    async def instantiate(self, ctx: ResolveCtx) -> Any:
        """Return pre-bound value."""
        return self._value

    async def shutdown(self) -> None:
        pass
