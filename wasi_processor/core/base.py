"""Abstract base class for WASM execution backends.

Provides the ExecutionBackend ABC that every engine integration implements,
plus the engine-neutral CompiledModule handle and ExecutionOutcome record
that flow between a backend and the processor. The processor owns error
classification; backends only report how the guest terminated.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from wasi_processor.core.models import ProcessorConfig
    from wasi_processor.invocation import InvocationContext


class CompiledModule:
    """Immutable handle to a module compiled by a backend.

    Attributes:
        native: Backend-specific compiled artifact (e.g., wasmtime.Module)
        size_bytes: Size of the raw module bytes
        digest: SHA-256 hex digest of the raw module bytes
    """

    __slots__ = ("native", "size_bytes", "digest")

    def __init__(self, native: Any, size_bytes: int, digest: str) -> None:
        object.__setattr__(self, "native", native)
        object.__setattr__(self, "size_bytes", size_bytes)
        object.__setattr__(self, "digest", digest)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("CompiledModule is immutable")

    def __repr__(self) -> str:
        return f"CompiledModule(size_bytes={self.size_bytes}, digest={self.digest[:12]})"


class ExecutionOutcome:
    """How a single guest run terminated.

    Attributes:
        exit_code: Explicit exit code, 0 for a normal return (None if trapped)
        trapped: Whether execution aborted on a runtime trap
        trap_reason: Classified trap reason ("out_of_fuel", "memory_limit",
            "invalid_exit_status" or "trap")
        trap_message: Engine-provided trap description
        fuel_consumed: Instructions executed (None if not metered)
    """

    def __init__(
        self,
        exit_code: int | None = 0,
        trapped: bool = False,
        trap_reason: str | None = None,
        trap_message: str | None = None,
        fuel_consumed: int | None = None,
    ):
        self.exit_code = exit_code
        self.trapped = trapped
        self.trap_reason = trap_reason
        self.trap_message = trap_message
        self.fuel_consumed = fuel_consumed


class ExecutionBackend(ABC):
    """Contract for a WASM engine integration.

    A backend is created once per processor. compile() is called exactly
    once; run() is called once per invocation, possibly from several
    threads at the same time, and must create a fresh instance every time.

    Attributes:
        config: ProcessorConfig with resource limits and guest grants
    """

    name: str = "backend"

    def __init__(self, config: ProcessorConfig) -> None:
        self.config = config

    @abstractmethod
    def compile(self, wasm_bytes: bytes) -> CompiledModule:
        """Validate and compile raw module bytes.

        Raises:
            CompilationError: If the bytes are not a valid module
        """
        pass

    @abstractmethod
    def run(self, module: CompiledModule, ctx: InvocationContext) -> ExecutionOutcome:
        """Instantiate module against ctx and invoke its entry point once.

        Guest stdout/stderr must be routed to ctx.sink paths.

        Raises:
            InstantiationFailedError: If instantiation or entry point lookup fails
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release engine-level resources. Must be idempotent."""
        pass


def classify_trap(message: str | None) -> str | None:
    """Classify trap reason based on message content for easier diagnostics."""
    if message is None:
        return None

    lowered = message.lower()
    if "invalid exit status" in lowered:
        return "invalid_exit_status"
    if "fuel" in lowered:
        return "out_of_fuel"
    if "memory" in lowered:
        return "memory_limit"
    return "trap"
