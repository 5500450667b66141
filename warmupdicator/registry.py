"""Warmup registry: loads warmupdicator.yaml and builds the check set.

Example file::

    endpoints:
      - name: users
        url: http://127.0.0.1:8000/api/users
        http_method: GET
        max_response_time_ms: 500
      - url: http://127.0.0.1:8000/api/orders
        http_method: POST
        request_body: '{"dry_run": true}'
        expected_status: 201
        headers:
          Authorization: Bearer warmup

    model_warmer:
      exclude_patterns: ["*Record", "*Immutable"]
      serialization: true
      deserialization: true
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .checks.base import Check
from .checks.endpoint import EndpointCheck
from .checks.models import DEFAULT_EXCLUDE_PATTERNS, ModelWarmupCheck, discover_models, filter_models

if TYPE_CHECKING:
    from fastapi import FastAPI

    from .config import Settings

logger = logging.getLogger(__name__)

REGISTRY_PATH = Path("warmupdicator.yaml")


# ── Data models ──────────────────────────────────────────────────────────────


def _endpoint_name(url: str) -> str:
    """Derive a unique name from the last URL segment, e.g. ``users-1a2b3c4d``."""
    part = (url or "unknown").rsplit("/", 1)[-1]
    part = re.sub(r"[^a-zA-Z0-9]", "-", part)
    part = re.sub(r"-+", "-", part).strip("-")
    return f"{part or 'endpoint'}-{uuid.uuid4().hex[:8]}"


@dataclass
class EndpointDef:
    """Definition of a single HTTP warmup target."""

    url: str
    name: str = ""  # generated from url when empty
    http_method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    request_body: str | None = None
    max_response_time_ms: int = 500  # also the request timeout
    expected_status: int | None = None  # any 2xx when unset
    ignore_failure: bool = False

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            self.name = _endpoint_name(self.url)


@dataclass
class ModelWarmerDef:
    """Settings for the pydantic model warmer."""

    exclude_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    serialization: bool = True
    deserialization: bool = True


# ── Registry ─────────────────────────────────────────────────────────────────


class WarmupRegistry:
    """Loads and caches warmup definitions from YAML."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or REGISTRY_PATH
        self._endpoints: list[EndpointDef] = []
        self._model_warmer = ModelWarmerDef()
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def load(self, force: bool = False) -> list[EndpointDef]:
        """Parse the YAML file and return the endpoint definitions."""
        if self._loaded and not force:
            return self._endpoints

        self._endpoints = []
        self._model_warmer = ModelWarmerDef()
        self._loaded = True

        if not self._path.exists():
            logger.warning("Warmup config not found: %s", self._path)
            return self._endpoints

        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except Exception as e:
            logger.error("Failed to parse %s: %s", self._path, e)
            return self._endpoints

        if not isinstance(raw, dict):
            logger.error("Warmup config %s is not a mapping", self._path)
            return self._endpoints

        for entry in raw.get("endpoints") or []:
            try:
                self._endpoints.append(_parse_endpoint(entry))
            except Exception as e:
                logger.warning("Skipping malformed endpoint entry: %s", e)

        try:
            self._model_warmer = _parse_model_warmer(raw.get("model_warmer") or {})
        except Exception as e:
            logger.warning("Ignoring malformed model_warmer block: %s", e)

        logger.info("Loaded %d warmup endpoints from %s", len(self._endpoints), self._path)
        return self._endpoints

    @property
    def endpoints(self) -> list[EndpointDef]:
        return self.load()

    @property
    def model_warmer(self) -> ModelWarmerDef:
        self.load()
        return self._model_warmer


# ── Parsers ──────────────────────────────────────────────────────────────────


def _parse_endpoint(raw: dict[str, Any]) -> EndpointDef:
    if not raw.get("url"):
        raise ValueError(f"endpoint entry without url: {raw!r}")
    expected = raw.get("expected_status")
    return EndpointDef(
        url=raw["url"],
        name=raw.get("name") or "",
        http_method=str(raw.get("http_method", "GET")).upper(),
        headers={str(k): str(v) for k, v in (raw.get("headers") or {}).items()},
        request_body=raw.get("request_body"),
        max_response_time_ms=int(raw.get("max_response_time_ms", 500)),
        expected_status=int(expected) if expected is not None else None,
        ignore_failure=bool(raw.get("ignore_failure", False)),
    )


def _parse_model_warmer(raw: dict[str, Any]) -> ModelWarmerDef:
    patterns = raw.get("exclude_patterns")
    return ModelWarmerDef(
        exclude_patterns=list(patterns) if patterns is not None else list(DEFAULT_EXCLUDE_PATTERNS),
        serialization=bool(raw.get("serialization", True)),
        deserialization=bool(raw.get("deserialization", True)),
    )


# ── Check provider ───────────────────────────────────────────────────────────


def build_checks(
    settings: Settings,
    registry: WarmupRegistry,
    app: FastAPI | None = None,
    extra: Iterable[Check] = (),
) -> list[Check]:
    """Assemble the check set for one run.

    Application checks come first, then configured endpoints, then the model
    warmer (which needs the app to discover routes).
    """
    if not settings.warmup_enabled:
        logger.info("Warmup disabled, no checks registered")
        return []

    checks: list[Check] = list(extra)

    if settings.endpoint_warmer_enabled:
        checks.extend(EndpointCheck(ep) for ep in registry.endpoints)

    if settings.model_warmer_enabled:
        if app is None:
            logger.warning("Model warmer enabled but no app to discover routes from")
        else:
            cfg = registry.model_warmer
            models = filter_models(discover_models(app), cfg.exclude_patterns)
            checks.append(ModelWarmupCheck(models, cfg.serialization, cfg.deserialization))

    return checks
