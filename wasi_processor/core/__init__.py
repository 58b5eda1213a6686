"""Core processor abstractions and models.

This module provides the foundational types and interfaces for the WASI
processor, including Pydantic models for configuration and results, the
execution backend abstraction, and the error taxonomy.
"""

from __future__ import annotations

from .base import CompiledModule, ExecutionBackend, ExecutionOutcome
from .errors import (
    CompilationError,
    ErrorKind,
    ExecutionError,
    GuestReportedError,
    InstantiationFailedError,
    InvocationTimeoutError,
    NonZeroExitError,
    ProcessorClosedError,
    ProcessorConfigError,
    ScratchIOError,
    TrappedError,
    WasiProcessorError,
)
from .models import BackendType, CaptureStrategy, InvocationResult, ProcessorConfig

__all__ = [
    "BackendType",
    "CaptureStrategy",
    "CompilationError",
    "CompiledModule",
    "ErrorKind",
    "ExecutionBackend",
    "ExecutionError",
    "ExecutionOutcome",
    "GuestReportedError",
    "InstantiationFailedError",
    "InvocationResult",
    "InvocationTimeoutError",
    "NonZeroExitError",
    "ProcessorClosedError",
    "ProcessorConfig",
    "ProcessorConfigError",
    "ScratchIOError",
    "TrappedError",
    "WasiProcessorError",
]
