"""Entitlements module stores features, modules, plans and the links between them."""

__all__ = [
    "models",
    "schemas",
    "repository",
    "linking",
    "projection",
    "service",
    "router",
]
