# core/service_registry.py
"""
Service registry attached to the Flask app

Services are registered under a name with a lifetime:

- transient: a new instance on every resolve
- scoped: one instance per app context (request, CLI command, seeding run),
  kept on ``flask.g`` and dropped when the context is torn down
- singleton: one instance for the life of the app
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from flask import current_app, g

logger = logging.getLogger(__name__)

TRANSIENT = 'transient'
SCOPED = 'scoped'
SINGLETON = 'singleton'

EXTENSION_KEY = 'wilderblog'


@dataclass
class Registration:
    name: str
    implementation: type
    lifetime: str
    factory: Callable[['ServiceRegistry'], Any]


class ServiceRegistry:

    def __init__(self):
        self._registrations: Dict[str, Registration] = {}
        self._singletons: Dict[str, Any] = {}
        # Names of request pipeline steps in the order they were added
        self.pipeline: List[str] = []

    def _add(self, name: str, implementation: type, lifetime: str,
             factory: Optional[Callable[['ServiceRegistry'], Any]]) -> None:
        if factory is None:
            factory = lambda registry: implementation()  # noqa: E731
        self._registrations[name] = Registration(name, implementation, lifetime, factory)
        self._singletons.pop(name, None)
        logger.debug(f"Registered {lifetime} service '{name}' -> {implementation.__name__}")

    def add_transient(self, name: str, implementation: type, factory=None) -> None:
        self._add(name, implementation, TRANSIENT, factory)

    def add_scoped(self, name: str, implementation: type, factory=None) -> None:
        self._add(name, implementation, SCOPED, factory)

    def add_singleton(self, name: str, implementation: type, factory=None) -> None:
        self._add(name, implementation, SINGLETON, factory)

    def registration(self, name: str) -> Registration:
        try:
            return self._registrations[name]
        except KeyError:
            raise LookupError(f"No service registered as '{name}'") from None

    def implementation(self, name: str) -> type:
        return self.registration(name).implementation

    def __contains__(self, name: str) -> bool:
        return name in self._registrations

    def resolve(self, name: str) -> Any:
        reg = self.registration(name)

        if reg.lifetime == TRANSIENT:
            return reg.factory(self)

        if reg.lifetime == SINGLETON:
            if name not in self._singletons:
                self._singletons[name] = reg.factory(self)
            return self._singletons[name]

        scope = g.setdefault('_wilderblog_scope', {})
        if name not in scope:
            scope[name] = reg.factory(self)
        return scope[name]

    def add_pipeline_step(self, step: str) -> None:
        self.pipeline.append(step)


def get_registry(app=None) -> ServiceRegistry:
    app = app or current_app
    return app.extensions[EXTENSION_KEY]


def get_service(name: str) -> Any:
    """Resolve a service from the current app"""
    return get_registry().resolve(name)
