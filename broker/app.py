# ==============================
# Application Wiring
# ==============================
"""
Deterministic boot for toolbroker.

Responsibilities:
- Build one resource manager per integration from Settings
- Import integrations/<name>/registry.py and call register(registrations)
- Freeze the catalog (registry + handler table) and return a Dispatcher

Rules:
- Registration is side-effect safe: no network calls at boot.
- A CatalogError aborts startup; any other registration failure is logged
  and that integration is skipped as a whole.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from types import ModuleType
from typing import Any, Iterable, List, Optional

from broker.config.schema import Settings
from broker.errors import CatalogError
from broker.logging.metrics import Metrics
from broker.operations.dispatcher import Dispatcher
from broker.operations.registry import OperationCatalog
from broker.resources.manager import ResourceSet
from broker.utils.redaction import SecurityRedactor

logger = logging.getLogger(__name__)

INTEGRATIONS_PACKAGE = "integrations"


@dataclass(frozen=True)
class IntegrationRegistrations:
    """What an integration's register() receives."""

    catalog: OperationCatalog
    resources: ResourceSet
    settings: Settings


@dataclass(frozen=True)
class IntegrationLoadError:
    integration: str
    message: str


@dataclass
class BootReport:
    loaded: List[str] = field(default_factory=list)
    errors: List[IntegrationLoadError] = field(default_factory=list)


def build_dispatcher(
    settings: Settings,
    *,
    resources: Optional[Iterable[Any]] = None,
    redactor: Optional[SecurityRedactor] = None,
    metrics: Optional[Metrics] = None,
    report: Optional[BootReport] = None,
) -> Dispatcher:
    """
    Build a ready-to-serve Dispatcher.

    resources: pre-built managers (tests inject fakes here); an integration
    whose backend is already present does not build its own.
    """
    resource_set = ResourceSet()
    for mgr in resources or []:
        resource_set.add(mgr)

    boot = report if report is not None else BootReport()
    catalog = OperationCatalog()

    for name in settings.integrations.enabled:
        try:
            module = _import_registry(name)
            pack = OperationCatalog()
            build_resource = getattr(module, "build_resource", None)
            backend = getattr(module, "BACKEND", None)
            if callable(build_resource) and backend and not resource_set.has(backend):
                resource_set.add(build_resource(settings))
            module.register(IntegrationRegistrations(catalog=pack, resources=resource_set, settings=settings))
            catalog.extend(pack)
        except CatalogError:
            raise
        except Exception as exc:
            logger.exception("Integration registration failed: %s", name)
            boot.errors.append(IntegrationLoadError(integration=name, message=str(exc)))
            continue
        boot.loaded.append(name)

    registry, table = catalog.build()

    unknown = [b for b in registry.backends() if not resource_set.has(b)]
    if unknown:
        raise CatalogError(f"Operations name unknown backends: {', '.join(unknown)}")

    logger.info("Catalog built: %d operations from %s", len(registry), ", ".join(boot.loaded) or "none")

    return Dispatcher(
        registry=registry,
        table=table,
        resources=resource_set,
        redactor=redactor or build_redactor(settings),
        metrics=metrics or Metrics(),
    )


def build_redactor(settings: Settings) -> SecurityRedactor:
    return SecurityRedactor(
        patterns=settings.logging.redact_patterns,
        enabled=settings.logging.redact,
    )


def _import_registry(name: str) -> ModuleType:
    module = importlib.import_module(f"{INTEGRATIONS_PACKAGE}.{name}.registry")
    if not callable(getattr(module, "register", None)):
        raise AttributeError(f"Integration {name} has no register()")
    return module

