"""Structured logging for processor lifecycle and invocation events.

Provides ProcessorLogger class that uses structlog for structured event
emission (module.compiled, invocation.start, invocation.complete, ...).
Configures structlog with console rendering by default but allows custom
configuration.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from wasi_processor.core.errors import WasiProcessorError
    from wasi_processor.core.models import InvocationResult


def configure_structlog(level: int = logging.INFO, use_json: bool = False) -> None:
    """Configure structlog with sensible defaults for processor logging.

    Args:
        level: Minimum log level (default: logging.INFO)
        use_json: If True, use JSON renderer; otherwise use console renderer
    """
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


class ProcessorLogger:
    """Wrapper for structured logging of processor events.

    Accepts either structlog or standard logging.Logger instances and normalizes
    emission so callers do not need to care which backend is in use.
    """

    _PATH_TRUNCATION_SUFFIX = "...[truncated]"
    _MAX_PATH_LENGTH = 140
    _MAX_STDERR_PREVIEW = 200

    def __init__(self, logger: Any = None) -> None:
        """Initialize ProcessorLogger with optional custom logger.

        Args:
            logger: Optional structlog BoundLogger, logging.Logger, or string name.
                    If None, a default structlog logger named 'wasi_processor' is created.
                    If string, creates a structlog logger with that name.
        """
        if logger is None:
            self._logger = structlog.get_logger("wasi_processor")
        elif isinstance(logger, str):
            self._logger = structlog.get_logger(logger)
        else:
            self._logger = logger

    @property
    def logger(self) -> Any:
        """Expose the underlying logger instance (structlog or logging.Logger)."""
        return self._logger

    def _emit(self, level: int, event: str, **fields: Any) -> None:
        """Emit a log record regardless of logger backend."""
        if isinstance(self._logger, logging.Logger):
            # Standard logging expects structured data in the 'extra' mapping
            self._logger.log(level, event, extra={"event": event, **fields})
            return

        log_method = getattr(self._logger, logging.getLevelName(level).lower(), None)
        if not callable(log_method):
            log_method = self._logger.info
        log_method(event, **fields)

    def _truncate_path(self, path: str) -> str:
        """Truncate long file paths to keep logs concise."""
        if len(path) <= self._MAX_PATH_LENGTH:
            return path
        keep = self._MAX_PATH_LENGTH - len(self._PATH_TRUNCATION_SUFFIX)
        return f"{path[:keep]}{self._PATH_TRUNCATION_SUFFIX}"

    def log_module_compiled(
        self, backend: str, size_bytes: int, digest: str, duration_ms: float
    ) -> None:
        """Log a successful one-time module compilation.

        Args:
            backend: Backend name (e.g., "wasmtime")
            size_bytes: Raw module size
            digest: SHA-256 hex digest of the module bytes
            duration_ms: Compilation wall-clock time
        """
        self._emit(
            logging.INFO,
            "module.compiled",
            backend=backend,
            size_bytes=size_bytes,
            digest=digest,
            duration_ms=duration_ms,
        )

    def log_scratch_created(self, path: str, owned: bool) -> None:
        """Log scratch directory setup for the file capture strategy.

        Args:
            path: Scratch directory path
            owned: True if the processor created (and will remove) the directory
        """
        self._emit(
            logging.INFO,
            "scratch.created",
            path=self._truncate_path(path),
            owned=owned,
        )

    def log_invocation_start(
        self, invocation_id: int, payload_bytes: int, capture: str, **extra: Any
    ) -> None:
        """Log the start of an invocation.

        Emitted at DEBUG level since it fires once per message.

        Args:
            invocation_id: Sequential invocation id
            payload_bytes: Size of the input payload
            capture: Capture strategy name
            **extra: Additional key-value pairs to include in log event
        """
        self._emit(
            logging.DEBUG,
            "invocation.start",
            invocation_id=invocation_id,
            payload_bytes=payload_bytes,
            capture=capture,
            **extra,
        )

    def log_invocation_complete(self, result: InvocationResult) -> None:
        """Log a successful invocation with result metrics.

        Args:
            result: InvocationResult containing output and metrics
        """
        self._emit(
            logging.DEBUG,
            "invocation.complete",
            invocation_id=result.invocation_id,
            exit_code=result.exit_code,
            output_bytes=len(result.output),
            stderr_bytes=len(result.stderr),
            fuel_consumed=result.fuel_consumed,
            duration_ms=result.duration_ms,
        )

    def log_invocation_failed(
        self,
        error: WasiProcessorError,
        duration_ms: float | None = None,
        invocation_id: int | None = None,
    ) -> None:
        """Log a failed invocation at WARNING level.

        Args:
            error: Error raised for the invocation. ExecutionErrors carry a
                kind; others (e.g. ScratchIOError) are logged with kind None.
            duration_ms: Wall-clock time until the failure, if measured
            invocation_id: Used when the error does not carry its own id
        """
        kind = getattr(error, "kind", None)
        log_kwargs: dict[str, Any] = {
            "invocation_id": getattr(error, "invocation_id", None) or invocation_id,
            "kind": kind.value if kind is not None else None,
            "error_type": type(error).__name__,
            "error": str(error)[: self._MAX_STDERR_PREVIEW],
        }
        for attr in ("exit_code", "trap_reason", "timeout"):
            value = getattr(error, attr, None)
            if value is not None:
                log_kwargs[attr] = value
        if duration_ms is not None:
            log_kwargs["duration_ms"] = duration_ms

        self._emit(logging.WARNING, "invocation.failed", **log_kwargs)

    def log_processor_closed(self, removed_path: str | None, invocations: int) -> None:
        """Log processor teardown.

        Args:
            removed_path: Scratch path removed during teardown (None if nothing removed)
            invocations: Number of invocations served by the processor
        """
        self._emit(
            logging.INFO,
            "processor.closed",
            removed_path=self._truncate_path(removed_path) if removed_path else None,
            invocations=invocations,
        )
