"""Per-message WASI module execution for data pipelines.

Runs a compiled WASI module once per payload in a fresh sandboxed instance,
passing the payload as argv[1] and returning what the module writes to
stdout.

Example:
    >>> from wasi_processor import WasiProcessor
    >>> with WasiProcessor.from_file("filters/upper.wasm") as processor:
    ...     processor.process(b"hello world")
"""

from __future__ import annotations

from .config import load_config
from .core import (
    BackendType,
    CaptureStrategy,
    CompilationError,
    ErrorKind,
    ExecutionError,
    GuestReportedError,
    InstantiationFailedError,
    InvocationResult,
    InvocationTimeoutError,
    NonZeroExitError,
    ProcessorClosedError,
    ProcessorConfig,
    ProcessorConfigError,
    ScratchIOError,
    TrappedError,
    WasiProcessorError,
)
from .core.logging import ProcessorLogger, configure_structlog
from .factory import create_processor
from .processor import WasiProcessor

__version__ = "0.1.0"

__all__ = [
    "BackendType",
    "CaptureStrategy",
    "CompilationError",
    "ErrorKind",
    "ExecutionError",
    "GuestReportedError",
    "InstantiationFailedError",
    "InvocationResult",
    "InvocationTimeoutError",
    "NonZeroExitError",
    "ProcessorClosedError",
    "ProcessorConfig",
    "ProcessorConfigError",
    "ProcessorLogger",
    "ScratchIOError",
    "TrappedError",
    "WasiProcessor",
    "WasiProcessorError",
    "configure_structlog",
    "create_processor",
    "load_config",
]
