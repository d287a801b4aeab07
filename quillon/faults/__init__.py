"""
Quillon Faults - structured fault signals.

Errors raised while building the route table or serving a request are
typed faults with a stable code, a domain and an exposure flag.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain enumeration
- Severity: Severity levels
- NoControllersFoundError, ControllerMetadataMissingError: build faults
- ParameterBindingError, HandlerExecutionError: request faults
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

from .domains import (
    NO_CONTROLLERS_FOUND,
    BuildFault,
    NoControllersFoundError,
    ControllerMetadataMissingError,
    ParameterBindingError,
    HandlerExecutionError,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",

    # Build faults
    "NO_CONTROLLERS_FOUND",
    "BuildFault",
    "NoControllersFoundError",
    "ControllerMetadataMissingError",

    # Request faults
    "ParameterBindingError",
    "HandlerExecutionError",
]
