"""Warmup checks: contract, result value and built-in checks."""

from .base import Check, CheckResult, FunctionCheck, check
from .endpoint import EndpointCheck
from .models import ModelWarmupCheck, discover_models, filter_models
