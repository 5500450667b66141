"""Pydantic model warmup: builds serializers/validators before first use.

pydantic compiles a model's core schema lazily in places (JSON schema, first
dump of nested unions, TypeAdapter caches). Discovering the request and
response models behind the app's routes and exercising them once moves that
work out of the first real request.
"""

from __future__ import annotations

import fnmatch
import logging
import time
import typing
from collections.abc import Iterable
from typing import Any

from fastapi import FastAPI
from fastapi.routing import APIRoute
from pydantic import BaseModel

from .base import Check, CheckResult, elapsed_ms

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_PATTERNS = ["*Record", "*Immutable"]
FRAMEWORK_MODULES = ("fastapi", "starlette", "pydantic")


# ── Discovery ────────────────────────────────────────────────────────────────


def _is_model(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, BaseModel)


def _unwrap_model(tp: Any) -> type[BaseModel] | None:
    """Return the model behind ``tp``, looking one level into list/Optional/etc."""
    if _is_model(tp):
        return tp
    if typing.get_origin(tp) is None:
        return None
    for arg in typing.get_args(tp):
        if _is_model(arg):
            return arg
    return None


def _route_hints(route: APIRoute) -> dict[str, Any]:
    try:
        return typing.get_type_hints(route.endpoint)
    except Exception as e:
        logger.debug("Cannot resolve type hints for %s: %s", route.path, e)
        return dict(getattr(route.endpoint, "__annotations__", {}))


def discover_models(app: FastAPI) -> set[type[BaseModel]]:
    """Collect request-body and response models from every API route."""
    models: set[type[BaseModel]] = set()
    routes = [r for r in app.routes if isinstance(r, APIRoute)]

    for route in routes:
        hints = _route_hints(route)

        for name, annotation in hints.items():
            if name == "return":
                continue
            model = _unwrap_model(annotation)
            if model is not None:
                models.add(model)
                logger.debug("Found request model: %s", model.__name__)

        response = route.response_model if route.response_model is not None else hints.get("return")
        model = _unwrap_model(response)
        if model is not None:
            models.add(model)
            logger.debug("Found response model: %s", model.__name__)

    logger.debug("Discovered %d models from %d routes", len(models), len(routes))
    return models


def filter_models(
    models: Iterable[type[BaseModel]],
    exclude_patterns: Iterable[str] = DEFAULT_EXCLUDE_PATTERNS,
) -> list[type[BaseModel]]:
    """Drop framework models and names matching any exclude glob."""
    patterns = list(exclude_patterns)
    kept = []
    for model in models:
        if model.__module__.split(".")[0] in FRAMEWORK_MODULES:
            logger.debug("Skipping framework type: %s", model.__name__)
            continue
        if any(fnmatch.fnmatchcase(model.__name__, p) for p in patterns):
            logger.debug("Excluded model from warmup: %s", model.__name__)
            continue
        kept.append(model)
    return sorted(kept, key=lambda m: (m.__module__, m.__qualname__))


# ── Check ────────────────────────────────────────────────────────────────────


class ModelWarmupCheck(Check):
    """Exercises serialization and validation for a fixed set of models."""

    def __init__(
        self,
        models: Iterable[type[BaseModel]],
        serialization: bool = True,
        deserialization: bool = True,
    ) -> None:
        self.models = list(models)
        self.serialization = serialization
        self.deserialization = deserialization

    def identity(self) -> str:
        return "model-warmup"

    def execute(self) -> CheckResult:
        logger.info("Starting model warmup for %d models", len(self.models))
        t0 = time.perf_counter()
        try:
            warmed = skipped = 0
            for model in self.models:
                if self._warm_model(model):
                    warmed += 1
                else:
                    skipped += 1

            duration = elapsed_ms(t0)
            logger.info(
                "Model warmup completed successfully: %d warmed, %d skipped (%dms)",
                warmed, skipped, duration,
            )
            return CheckResult.ok(duration)
        except Exception as e:
            duration = elapsed_ms(t0)
            logger.error("Model warmup failed: %s", e)
            return CheckResult.failure(f"Model warmup failed: {e}", duration)

    def _warm_model(self, model: type[BaseModel]) -> bool:
        """Warm one model. Returns False when skipped or failed."""
        logger.debug("Warming up model: %s", model.__name__)
        try:
            try:
                instance = model()
            except Exception:
                instance = None

            if instance is None:
                # Required fields without defaults: build the schemas instead
                warmed = False
                if self.serialization:
                    model.model_json_schema(mode="serialization")
                    warmed = True
                if self.deserialization:
                    model.model_json_schema(mode="validation")
                    warmed = True
                return warmed

            warmed = False
            payload = None
            if self.serialization:
                payload = instance.model_dump_json()
                warmed = True
            if self.deserialization:
                model.model_validate_json(payload if payload is not None else instance.model_dump_json())
                warmed = True
            return warmed
        except Exception as e:
            logger.debug("Failed to warm up model %s: %s", model.__name__, e)
            return False
