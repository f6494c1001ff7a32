from __future__ import annotations

from typing import Any, Dict


_REGISTRY: Dict[str, Any] = {}


def register(name: str, factory) -> None:
    _REGISTRY[name] = factory


def get_estimator(name: str):
    if name not in _REGISTRY:
        raise KeyError(f"Unknown estimator: {name}")
    return _REGISTRY[name]()


def available_estimators() -> Dict[str, Any]:
    return dict(_REGISTRY)
