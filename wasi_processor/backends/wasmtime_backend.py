"""Wasmtime execution backend.

Compiles the module once against a shared Engine and Linker (with WASI
preview1 defined), then creates a fresh Store, WasiConfig and instance for
every invocation. The guest sees only its argv, its environment, standard
streams routed to the invocation's capture sink, and any read-only
directories the processor config grants explicitly.
"""

from __future__ import annotations

import hashlib
import os
import threading
from typing import TYPE_CHECKING

from wasmtime import (
    Config,
    Engine,
    ExitTrap,
    Func,
    Linker,
    Module,
    Store,
    Trap,
    WasiConfig,
    WasmtimeError,
)

from wasi_processor.capture import BufferedSink
from wasi_processor.core.base import (
    CompiledModule,
    ExecutionBackend,
    ExecutionOutcome,
    classify_trap,
)
from wasi_processor.core.errors import (
    CompilationError,
    InstantiationFailedError,
    ScratchIOError,
)

if TYPE_CHECKING:
    from wasi_processor.core.models import ProcessorConfig
    from wasi_processor.invocation import InvocationContext

ENTRY_POINT = "_start"

# wasmtime-py keeps custom stream callbacks in a process-wide registry that
# is not thread-safe; registration and release go through this lock.
_STREAM_REGISTRY_LOCK = threading.Lock()


class WasmtimeBackend(ExecutionBackend):
    """ExecutionBackend built on wasmtime-py.

    Attributes:
        engine: Shared wasmtime Engine (fuel metering enabled if configured)
        linker: Shared Linker with WASI imports defined
    """

    name = "wasmtime"

    def __init__(self, config: ProcessorConfig) -> None:
        super().__init__(config)
        cfg = Config()
        if config.fuel_budget is not None:
            cfg.consume_fuel = True
        self.engine: Engine | None = Engine(cfg)

        self.linker: Linker | None = Linker(self.engine)
        self.linker.define_wasi()

    def compile(self, wasm_bytes: bytes) -> CompiledModule:
        if self.engine is None:
            raise CompilationError("backend is closed")
        if not wasm_bytes:
            raise CompilationError("invalid WASM module: empty input")

        try:
            module = Module(self.engine, wasm_bytes)
        except WasmtimeError as e:
            raise CompilationError(f"invalid WASM module: {e}") from e

        return CompiledModule(
            native=module,
            size_bytes=len(wasm_bytes),
            digest=hashlib.sha256(wasm_bytes).hexdigest(),
        )

    def _wasi_config(self, ctx: InvocationContext) -> WasiConfig:
        """Build the per-invocation WASI capabilities."""
        wasi = WasiConfig()
        wasi.argv = ctx.argv
        wasi.env = [(k, v) for k, v in ctx.env.items()]

        try:
            for host_path, guest_path in self.config.readonly_mounts:
                wasi.preopen_dir(
                    os.path.abspath(host_path),
                    guest_path,
                    fs_mutable=False,
                )
        except WasmtimeError as e:
            raise InstantiationFailedError(
                f"failed to preopen read-only mount: {e}", invocation_id=ctx.invocation_id
            ) from e

        sink = ctx.sink
        if isinstance(sink, BufferedSink):
            with _STREAM_REGISTRY_LOCK:
                wasi.stdout_custom = sink.write_stdout
                wasi.stderr_custom = sink.write_stderr
        else:
            try:
                wasi.stdout_file = str(sink.stdout_path)
                wasi.stderr_file = str(sink.stderr_path)
            except WasmtimeError as e:
                raise ScratchIOError(f"failed to bind guest output streams: {e}") from e

        return wasi

    def run(self, module: CompiledModule, ctx: InvocationContext) -> ExecutionOutcome:
        engine, linker = self.engine, self.linker
        if engine is None or linker is None:
            raise InstantiationFailedError("backend is closed", invocation_id=ctx.invocation_id)

        store = Store(engine)
        wasi: WasiConfig | None = None
        try:
            wasi = self._wasi_config(ctx)
            store.set_wasi(wasi)
            return self._execute(store, linker, module, ctx)
        finally:
            # Dropping the store releases the registered stream callbacks
            with _STREAM_REGISTRY_LOCK:
                store.close()
                if wasi is not None:
                    wasi.close()

    def _execute(
        self, store: Store, linker: Linker, module: CompiledModule, ctx: InvocationContext
    ) -> ExecutionOutcome:
        """Instantiate the module in store and run its entry point once."""
        fuel_budget = self.config.fuel_budget
        if fuel_budget is not None:
            store.set_fuel(fuel_budget)
        if self.config.memory_bytes is not None:
            store.set_limits(memory_size=self.config.memory_bytes)

        try:
            instance = linker.instantiate(store, module.native)
        except (WasmtimeError, Trap) as e:
            raise InstantiationFailedError(
                f"failed to create wasmtime instance: {e}", invocation_id=ctx.invocation_id
            ) from e

        start = instance.exports(store).get(ENTRY_POINT)
        if not isinstance(start, Func):
            raise InstantiationFailedError(
                f"module does not export a {ENTRY_POINT} function",
                invocation_id=ctx.invocation_id,
            )

        try:
            start(store)
            outcome = ExecutionOutcome(exit_code=0)
        except ExitTrap as trap:
            # WASI proc_exit; code 0 is a normal termination
            outcome = ExecutionOutcome(exit_code=trap.code)
        except (Trap, WasmtimeError) as trap:
            message = str(trap)
            outcome = ExecutionOutcome(
                exit_code=None,
                trapped=True,
                trap_reason=classify_trap(message),
                trap_message=message,
            )

        if fuel_budget is not None:
            try:
                outcome.fuel_consumed = fuel_budget - store.get_fuel()
            except WasmtimeError:
                outcome.fuel_consumed = None

        return outcome

    def close(self) -> None:
        self.linker = None
        self.engine = None
