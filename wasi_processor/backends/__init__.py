"""Execution backend implementations.

Each module provides an ExecutionBackend for one WASM engine. The rest of
the processor is backend-agnostic and selects one through get_backend().
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from wasi_processor.core.models import BackendType

if TYPE_CHECKING:
    from wasi_processor.core.base import ExecutionBackend
    from wasi_processor.core.models import ProcessorConfig


def get_backend(config: ProcessorConfig) -> ExecutionBackend:
    """Instantiate the backend selected by config.backend.

    Raises:
        ValueError: If config.backend is not a supported BackendType
    """
    if config.backend == BackendType.WASMTIME:
        from wasi_processor.backends.wasmtime_backend import WasmtimeBackend

        return WasmtimeBackend(config)

    raise ValueError(f"Unsupported backend type: {config.backend}")


__all__ = ["get_backend"]
