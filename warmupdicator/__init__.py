"""Warmupdicator: know when a freshly started process is warmed up."""

from .checks import Check, CheckResult, EndpointCheck, FunctionCheck, ModelWarmupCheck, check
from .lifecycle import WarmupTrigger, warmup_lifespan
from .registry import EndpointDef, ModelWarmerDef, WarmupRegistry, build_checks
from .service import ResultStore, WarmupService, WarmupSnapshot

__all__ = [
    "Check",
    "CheckResult",
    "EndpointCheck",
    "EndpointDef",
    "FunctionCheck",
    "ModelWarmerDef",
    "ModelWarmupCheck",
    "ResultStore",
    "WarmupRegistry",
    "WarmupService",
    "WarmupSnapshot",
    "WarmupTrigger",
    "build_checks",
    "check",
    "warmup_lifespan",
]
