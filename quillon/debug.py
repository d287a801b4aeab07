"""
Route introspection.

``get_route_info`` reconstructs the route table from the metadata store
and the controller bindings of a container, without building anything:

    [
        {
            "controller": "OrderController",
            "endpoints": [
                {"route": "GET /api/order/"},
                {"route": "GET /api/order/:id", "args": ["@requestParam id"]},
            ],
        },
    ]

An endpoint only has ``args`` when the route binds at least one named
path parameter, query value, header or cookie.
"""

from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .controller.metadata import ControllerMetadata, MetadataStore, RouteMetadata, metadata_store
from .controller.registry import ControllerRegistry

if TYPE_CHECKING:
    from .di import Container


def _endpoint(controller: ControllerMetadata, route: RouteMetadata) -> Dict[str, Any]:
    endpoint: Dict[str, Any] = {"route": f"{route.verb.value} {controller.base_path}{route.path}"}
    args = route.report_args
    if args:
        endpoint["args"] = args
    return endpoint


def get_route_info(
    container: "Container",
    store: Optional[MetadataStore] = None,
) -> List[Dict[str, Any]]:
    """
    Route report for every known controller.

    Bound controllers come first in binding order, then declared but not
    yet bound controllers, most recently declared first, the order
    ``Server.build()`` would bind them in. Bound classes without
    controller metadata are skipped.
    """
    store = store if store is not None else metadata_store
    registry = ControllerRegistry(container, store)

    entries: List[ControllerMetadata] = []
    seen_identifiers = set()

    for identifier, cls in registry.bound():
        meta = store.get_controller(identifier, target=cls)
        if meta is None:
            continue
        entries.append(meta)
        seen_identifiers.add(identifier)

    for meta in reversed(store.get_controllers()):
        if meta.identifier not in seen_identifiers:
            entries.append(meta)
            seen_identifiers.add(meta.identifier)

    return [
        {
            "controller": meta.identifier,
            "endpoints": [
                _endpoint(meta, route)
                for route in store.get_routes(meta.identifier, target=meta.target)
            ],
        }
        for meta in entries
    ]
