from __future__ import annotations

import importlib
import logging
import pkgutil
from types import ModuleType
from typing import Iterable, List

from fastapi import APIRouter


logger = logging.getLogger(__name__)

MODULES_PACKAGE = "admin_service.modules"


def _import_if_present(name: str) -> ModuleType | None:
    try:
        return importlib.import_module(name)
    except ModuleNotFoundError as exc:
        # A broken import inside the module must still surface
        if exc.name != name:
            raise
        return None


def iter_domain_packages(package: str) -> Iterable[str]:
    root = importlib.import_module(package)
    for info in pkgutil.iter_modules(root.__path__):
        if info.ispkg:
            yield f"{package}.{info.name}"


def collect_routers(package: str = MODULES_PACKAGE) -> List[APIRouter]:
    """
    Import every domain package under ``package`` and return its routers.

    Each package may ship ``models`` and ``router`` submodules. Models are
    imported first so their tables are on ``Base.metadata`` before the app
    creates the schema.
    """
    routers: List[APIRouter] = []
    for name in iter_domain_packages(package):
        _import_if_present(f"{name}.models")
        router = getattr(_import_if_present(f"{name}.router"), "router", None)
        if router is None:
            logger.debug("No router in %s", name)
            continue
        routers.append(router)
    logger.info("Loaded %d router(s) from %s", len(routers), package)
    return routers
