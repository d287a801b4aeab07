"""
Quillon Faults - Concrete fault types.

Build-time faults abort ``Server.build()``; request-time faults are isolated
to the request that raised them and travel to the error path.
"""

from typing import Any, Optional

from .core import Fault, FaultDomain, Severity


NO_CONTROLLERS_FOUND = (
    "No controllers have been found! "
    "Please ensure that you have registered at least one Controller."
)


# ============================================================================
# BUILD Faults
# ============================================================================

class BuildFault(Fault):
    """Base class for route table assembly faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.BUILD,
            severity=Severity.FATAL,
            public=False,
            metadata=metadata,
        )


class NoControllersFoundError(BuildFault):
    """No controller bindings exist when the route table is built."""

    def __init__(self):
        super().__init__(code="NO_CONTROLLERS_FOUND", message=NO_CONTROLLERS_FOUND)


class ControllerMetadataMissingError(BuildFault):
    """A class bound as a controller was never decorated with @controller."""

    def __init__(self, identifier: str):
        super().__init__(
            code="CONTROLLER_METADATA_MISSING",
            message=(
                f"Controller '{identifier}' is bound in the container but has no "
                f"controller metadata. Decorate it with @controller(...)."
            ),
            metadata={"controller": identifier},
        )
        self.identifier = identifier


# ============================================================================
# Request-time Faults
# ============================================================================

class ParameterBindingError(Fault):
    """A declared handler parameter could not be extracted from the request."""

    def __init__(
        self,
        message: str,
        *,
        parameter: Optional[str] = None,
        kind: Optional[str] = None,
    ):
        super().__init__(
            code="PARAMETER_BINDING_INVALID",
            message=message,
            domain=FaultDomain.ROUTING,
            severity=Severity.WARN,
            public=True,
            metadata={"parameter": parameter, "kind": kind},
        )
        self.parameter = parameter
        self.kind = kind


class HandlerExecutionError(Fault):
    """
    Wraps an error raised by middleware, the auth provider or a handler.

    The wrapped exception is kept in ``original`` and chained as
    ``__cause__``.
    """

    def __init__(
        self,
        original: BaseException,
        *,
        controller: Optional[str] = None,
        method: Optional[str] = None,
        stage: str = "handler",
    ):
        target = f"{controller}.{method}" if controller and method else "request"
        super().__init__(
            code="HANDLER_EXECUTION_FAILED",
            message=f"Error during {stage} of {target}: {original}",
            domain=FaultDomain.FLOW,
            severity=Severity.ERROR,
            public=False,
            metadata={"controller": controller, "method": method, "stage": stage},
        )
        self.original = original
        self.stage = stage
