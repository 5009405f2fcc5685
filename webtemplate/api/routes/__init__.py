"""Route Modules — feature modules contributing registrars to the route registry.

Invariants:
    - Each feature module exposes register_routes(registry) and nothing else is called at startup
    - FEATURE_MODULES order is registration order, which is bind order

Design Decisions:
    - Explicit ordered tuple instead of import-time self-registration
"""

from webtemplate.api.registry import RouteRegistry
from webtemplate.api.routes import example

FEATURE_MODULES = (example,)


def build_registry(modules=FEATURE_MODULES) -> RouteRegistry:
    registry = RouteRegistry()
    for module in modules:
        module.register_routes(registry)
    return registry
