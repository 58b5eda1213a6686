"""Exception classes for processor construction and invocation failures.

Every failure surfaced by the processor derives from WasiProcessorError.
Per-invocation failures derive from ExecutionError and carry an ErrorKind
so pipeline hosts can branch on the failure category without isinstance
chains. None of these are retried internally.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a per-invocation failure."""
    INSTANTIATION_FAILED = "instantiation_failed"
    TRAPPED = "trapped"
    NON_ZERO_EXIT = "non_zero_exit"
    GUEST_REPORTED_ERROR = "guest_reported_error"
    TIMED_OUT = "timed_out"


class WasiProcessorError(Exception):
    """Base class for all processor errors."""

    pass


class ProcessorConfigError(WasiProcessorError):
    """Raised when processor configuration is invalid.

    Wraps Pydantic ValidationError with a domain-specific name, the same
    way configuration errors from TOML files are reported.
    """

    pass


class CompilationError(WasiProcessorError):
    """Raised when module bytes are not a valid module for the engine.

    Fatal to construction: no processor exists after this is raised.
    """

    pass


class ProcessorClosedError(WasiProcessorError):
    """Raised when a processor is used after close()."""

    pass


class ScratchIOError(WasiProcessorError):
    """Raised when scratch file truncate/read or teardown removal fails.

    The underlying OSError is chained as __cause__.
    """

    pass


class ExecutionError(WasiProcessorError):
    """Raised when a single invocation fails.

    The compiled module stays valid after this error and the processor can
    be used for subsequent payloads.

    Attributes:
        kind: ErrorKind describing the failure category
        invocation_id: Sequential id of the failed invocation (if known)
    """

    kind: ErrorKind

    def __init__(self, message: str, *, invocation_id: int | None = None) -> None:
        super().__init__(message)
        self.invocation_id = invocation_id


class InstantiationFailedError(ExecutionError):
    """Module could not be instantiated (unmet imports, no _start export)."""

    kind = ErrorKind.INSTANTIATION_FAILED


class TrappedError(ExecutionError):
    """Guest execution hit a runtime fault.

    Attributes:
        trap_reason: Classified reason ("out_of_fuel", "memory_limit", "trap")
        stderr: Bytes the guest wrote to its error stream before trapping
    """

    kind = ErrorKind.TRAPPED

    def __init__(
        self,
        message: str,
        *,
        trap_reason: str | None = None,
        stderr: bytes = b"",
        invocation_id: int | None = None,
    ) -> None:
        super().__init__(message, invocation_id=invocation_id)
        self.trap_reason = trap_reason
        self.stderr = stderr


class NonZeroExitError(ExecutionError):
    """Guest exited explicitly with a failure code.

    Wasmtime only accepts proc_exit codes in [0, 126). A guest exiting with
    126 or above traps instead and surfaces as TrappedError with
    trap_reason "invalid_exit_status".
    """

    kind = ErrorKind.NON_ZERO_EXIT

    def __init__(self, exit_code: int, *, invocation_id: int | None = None) -> None:
        super().__init__(f"exit_code: {exit_code}", invocation_id=invocation_id)
        self.exit_code = exit_code


class GuestReportedError(ExecutionError):
    """Guest wrote to its error stream.

    Attributes:
        stderr: Exact bytes written to the error stream
        exit_code: Exit code of the run (0 when the guest exited cleanly)
    """

    kind = ErrorKind.GUEST_REPORTED_ERROR

    def __init__(
        self, stderr: bytes, *, exit_code: int = 0, invocation_id: int | None = None
    ) -> None:
        text = stderr.decode("utf-8", errors="replace")
        super().__init__(f"wasi stderr: {text}", invocation_id=invocation_id)
        self.stderr = stderr
        self.exit_code = exit_code

    @property
    def message(self) -> str:
        """Error stream contents decoded as text."""
        return self.stderr.decode("utf-8", errors="replace")


class InvocationTimeoutError(ExecutionError):
    """Host-side deadline expired before the guest finished.

    The worker running the guest is detached, not interrupted.
    """

    kind = ErrorKind.TIMED_OUT

    def __init__(self, timeout: float, *, invocation_id: int | None = None) -> None:
        super().__init__(
            f"invocation exceeded {timeout}s deadline", invocation_id=invocation_id
        )
        self.timeout = timeout
