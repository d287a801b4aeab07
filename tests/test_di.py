"""
Dependency injection: container, providers, scopes.
"""

from typing import Annotated, Optional

import pytest

from quillon.di import (
    ClassProvider,
    Container,
    DependencyCycleError,
    DIError,
    FactoryProvider,
    Inject,
    ProviderNotFoundError,
    ValueProvider,
    inject,
    token_to_key,
)


class Repository:
    pass


class Service:
    def __init__(self, repo: Repository):
        self.repo = repo


class Greeter:
    def __init__(self, name: Annotated[str, Inject("greeting.name")], punctuation: str = "!"):
        self.name = name
        self.punctuation = punctuation


# ============================================================================
# Tokens
# ============================================================================

class TestTokens:

    def test_string_token_passes_through(self):
        assert token_to_key("quillon:controller") == "quillon:controller"

    def test_type_token_is_qualified_name(self):
        assert token_to_key(Repository) == f"{Repository.__module__}.Repository"


# ============================================================================
# Providers
# ============================================================================

class TestProviders:

    @pytest.mark.asyncio
    async def test_value_provider(self):
        container = Container()
        container.register(ValueProvider(token="config.db_url", value="postgres://localhost/db"))
        assert await container.resolve_async("config.db_url") == "postgres://localhost/db"

    @pytest.mark.asyncio
    async def test_class_provider_resolves_constructor_dependencies(self):
        container = Container()
        container.register(ClassProvider(Repository))
        container.register(ClassProvider(Service))
        service = await container.resolve_async(Service)
        assert isinstance(service.repo, Repository)

    @pytest.mark.asyncio
    async def test_inject_marker_and_python_default(self):
        container = Container()
        container.bind_constant("greeting.name", "world")
        container.bind(Greeter, Greeter)
        greeter = await container.resolve_async(Greeter)
        assert greeter.name == "world"
        assert greeter.punctuation == "!"

    @pytest.mark.asyncio
    async def test_factory_provider_receives_container(self):
        container = Container()
        container.bind_constant("base", 40)
        container.register(FactoryProvider(lambda c: "built", token="thing"))

        async def answer(c):
            return await c.resolve_async("base") + 2

        container.bind_factory("answer", answer)
        assert await container.resolve_async("thing") == "built"
        assert await container.resolve_async("answer") == 42

    @pytest.mark.asyncio
    async def test_async_init_convention(self):
        class Pool:
            def __init__(self):
                self.ready = False

            async def async_init(self):
                self.ready = True

        container = Container()
        container.bind(Pool, Pool)
        pool = await container.resolve_async(Pool)
        assert pool.ready is True

    def test_missing_annotation_is_rejected(self):
        class Untyped:
            def __init__(self, dependency):
                self.dependency = dependency

        with pytest.raises(DIError):
            ClassProvider(Untyped)

    def test_inject_factory_sets_markers(self):
        marker = inject("token", tag="primary", optional=True)
        assert marker._inject_token == "token"
        assert marker._inject_tag == "primary"
        assert marker._inject_optional is True


# ============================================================================
# Container
# ============================================================================

class TestContainer:

    @pytest.mark.asyncio
    async def test_unknown_token_raises(self):
        container = Container()
        container.bind_constant("service.a", 1)
        with pytest.raises(ProviderNotFoundError) as exc_info:
            await container.resolve_async("service")
        assert "service.a" in exc_info.value.candidates

    @pytest.mark.asyncio
    async def test_optional_resolution_returns_none(self):
        container = Container()
        assert await container.resolve_async("missing", optional=True) is None

    def test_conflicting_registration_raises(self):
        container = Container()
        container.bind_constant("value", 1)
        with pytest.raises(ValueError):
            container.bind_constant("value", 2)

    def test_tagged_bindings_keep_binding_order(self):
        container = Container()
        container.bind("controllers", Repository, tag="b")
        container.bind("controllers", Service, tag="a")
        assert [tag for tag, _ in container.get_tagged("controllers")] == ["b", "a"]

        child = container.create_request_scope()
        child.bind_constant("controllers", object(), tag="c")
        assert [tag for tag, _ in child.get_tagged("controllers")] == ["b", "a", "c"]

    @pytest.mark.asyncio
    async def test_app_scope_is_shared_across_requests(self):
        container = Container()
        container.bind(Repository, Repository, scope="app")

        first = await container.create_request_scope().resolve_async(Repository)
        second = await container.create_request_scope().resolve_async(Repository)
        assert first is second

    @pytest.mark.asyncio
    async def test_request_scope_is_fresh_per_request(self):
        container = Container()
        container.bind(Repository, Repository, scope="request")

        child_a = container.create_request_scope()
        child_b = container.create_request_scope()
        a1 = await child_a.resolve_async(Repository)
        a2 = await child_a.resolve_async(Repository)
        b1 = await child_b.resolve_async(Repository)
        assert a1 is a2
        assert a1 is not b1

    @pytest.mark.asyncio
    async def test_transient_scope_is_never_cached(self):
        container = Container()
        container.bind(Repository, Repository, scope="transient")
        assert await container.resolve_async(Repository) is not await container.resolve_async(Repository)

    @pytest.mark.asyncio
    async def test_child_registration_does_not_leak_to_parent(self):
        container = Container()
        child = container.create_request_scope()
        await child.register_instance("http.context", {"path": "/"})
        assert await child.resolve_async("http.context") == {"path": "/"}
        assert not container.is_registered("http.context")

    @pytest.mark.asyncio
    async def test_dependency_cycle_detected(self):
        class A:
            def __init__(self, b: Annotated[object, Inject("b")]):
                self.b = b

        class B:
            def __init__(self, a: Annotated[object, Inject("a")]):
                self.a = a

        container = Container()
        container.bind("a", A)
        container.bind("b", B)
        with pytest.raises(DependencyCycleError):
            await container.resolve_async("a")

    @pytest.mark.asyncio
    async def test_shutdown_runs_finalizers_lifo(self):
        closed = []

        class First:
            async def shutdown(self):
                closed.append("first")

        class Second:
            async def shutdown(self):
                closed.append("second")

        container = Container()
        container.bind(First, First)
        container.bind(Second, Second)
        await container.resolve_async(First)
        await container.resolve_async(Second)
        await container.shutdown()
        assert closed == ["second", "first"]

    @pytest.mark.asyncio
    async def test_finalizer_errors_are_logged_not_raised(self, caplog):
        class Broken:
            async def shutdown(self):
                raise RuntimeError("boom")

        container = Container()
        container.bind(Broken, Broken)
        await container.resolve_async(Broken)
        await container.shutdown()
        assert "boom" in caplog.text


class OptionalConsumer:
    def __init__(self, cache: Annotated[Optional[object], Inject("cache", optional=True)]):
        self.cache = cache


@pytest.mark.asyncio
async def test_optional_inject_marker_yields_none():
    container = Container()
    container.bind(OptionalConsumer, OptionalConsumer)
    consumer = await container.resolve_async(OptionalConsumer)
    assert consumer.cache is None
