"""Pydantic models for type-safe processor configuration and results.

Provides validated data models for the processor configuration, the
capture strategy and backend selectors, and per-invocation results.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from wasi_processor.core.errors import ProcessorConfigError

DEFAULT_PROGRAM_NAME = "wasi_processor"


class CaptureStrategy(str, Enum):
    """Output capture strategies for guest stdout/stderr.

    BUFFERED: Fresh per-invocation sink accumulated into memory (default)
    FILE: Sink under the processor's scratch directory
    """
    BUFFERED = "buffered"
    FILE = "file"


class BackendType(str, Enum):
    """Supported WASM execution backends.

    WASMTIME: Wasmtime engine with WASI preview1 linked in
    """
    WASMTIME = "wasmtime"


class ProcessorConfig(BaseModel):
    """Type-safe configuration for a WASI processor.

    Attributes:
        path: Path of the WASI module to execute (used by create_processor)
        io_dir: Optional scratch directory for the file capture strategy.
            When omitted a temporary directory is created and removed on close.
        capture: Output capture strategy
        backend: Execution backend
        program_name: argv[0] placeholder passed to the guest
        env: Environment variables exposed to the guest (empty by default)
        readonly_mounts: (host_path, guest_path) pairs preopened read-only
        fuel_budget: Optional WASM instruction limit per invocation
        memory_bytes: Optional linear memory cap per invocation
        timeout_seconds: Default host-side deadline for process_async
        fail_on_stderr: Treat guest stderr output as an invocation failure
    """

    path: str | None = Field(
        default=None,
        description="Path of the target WASI module to execute"
    )

    io_dir: str | None = Field(
        default=None,
        description="Optional directory for stdout scratch files"
    )

    capture: CaptureStrategy = Field(
        default=CaptureStrategy.BUFFERED,
        description="Output capture strategy"
    )

    backend: BackendType = Field(
        default=BackendType.WASMTIME,
        description="Execution backend"
    )

    program_name: str = Field(
        default=DEFAULT_PROGRAM_NAME,
        min_length=1,
        description="Guest argv[0] placeholder"
    )

    env: dict[str, str] = Field(
        default_factory=dict,
        description="Environment variables exposed to guest"
    )

    readonly_mounts: list[tuple[str, str]] = Field(
        default_factory=list,
        description="Host directories preopened read-only as (host_path, guest_path)"
    )

    fuel_budget: int | None = Field(
        default=None,
        gt=0,
        description="WASM instruction limit per invocation (None = unmetered)"
    )

    memory_bytes: int | None = Field(
        default=None,
        gt=0,
        description="Linear memory cap in bytes (None = engine default)"
    )

    timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Default host-side deadline for async invocations"
    )

    fail_on_stderr: bool = Field(
        default=True,
        description="Fail invocations that write to stderr"
    )

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ProcessorConfigError(f"Invalid processor config: {e}") from e

    @classmethod
    def model_validate(cls, obj: Any, *, strict: bool | None = None, context: dict[str, Any] | None = None) -> "ProcessorConfig":
        try:
            return super().model_validate(obj, strict=strict, context=context)  # type: ignore[arg-type]
        except ValidationError as e:
            raise ProcessorConfigError(f"Invalid processor config: {e}") from e

    @field_validator("program_name")
    @classmethod
    def validate_program_name(cls, v: str) -> str:
        """argv entries cross into the guest as C strings."""
        if "\x00" in v:
            raise ValueError("program_name must not contain NUL bytes")
        return v


class InvocationResult(BaseModel):
    """Result of one successful invocation with metrics.

    Attributes:
        output: Bytes the guest wrote to stdout
        stderr: Bytes the guest wrote to stderr (only non-empty when
            fail_on_stderr is disabled)
        exit_code: Guest exit code (always 0 for a successful invocation)
        fuel_consumed: WASM instructions executed (None if not metered)
        duration_ms: Wall-clock time of instantiate + run + drain
        invocation_id: Sequential id within the processor
        metadata: Backend or capture specific details
    """

    output: bytes = Field(
        default=b"",
        description="Captured stdout"
    )

    stderr: bytes = Field(
        default=b"",
        description="Captured stderr"
    )

    exit_code: int = Field(
        default=0,
        description="Guest exit code"
    )

    fuel_consumed: int | None = Field(
        default=None,
        description="WASM instructions executed (None if not tracked)"
    )

    duration_ms: float = Field(
        default=0.0,
        description="Wall-clock execution time in milliseconds"
    )

    invocation_id: int = Field(
        description="Sequential invocation id within the processor"
    )

    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional backend or capture metadata (e.g., backend, capture)"
    )
