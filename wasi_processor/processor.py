"""WasiProcessor: per-message WASI module execution.

For each payload the processor feeds the serialised contents into the
module as its second argument, runs the module's _start entry point in a
fresh instance, and returns whatever the module wrote to stdout. The module
is compiled once at construction and reused for every invocation.

Failure mapping, in order of precedence:
1. runtime trap -> TrappedError
2. bytes on stderr (when fail_on_stderr) -> GuestReportedError
3. nonzero exit code -> NonZeroExitError
"""

from __future__ import annotations

import asyncio
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

from wasi_processor.backends import get_backend
from wasi_processor.capture import FileCapture, create_capture
from wasi_processor.core.errors import (
    CompilationError,
    GuestReportedError,
    InvocationTimeoutError,
    NonZeroExitError,
    ProcessorClosedError,
    TrappedError,
    WasiProcessorError,
)
from wasi_processor.core.logging import ProcessorLogger
from wasi_processor.core.models import InvocationResult, ProcessorConfig
from wasi_processor.invocation import build_invocation

if TYPE_CHECKING:
    import os
    from types import TracebackType

    from wasi_processor.core.base import ExecutionOutcome


class WasiProcessor:
    """Executes a WASI-compliant WASM module once per payload.

    Safe to call from several threads at once with either capture strategy.
    Call close() (or use as a context manager) to release the compiled
    module, engine and scratch resources.

    Attributes:
        config: ProcessorConfig in effect
        module: CompiledModule shared by all invocations (None after close)
        logger: ProcessorLogger for structured events
    """

    def __init__(
        self,
        wasm_binary: bytes,
        io_dir: str | os.PathLike[str] | None = None,
        config: ProcessorConfig | None = None,
        logger: ProcessorLogger | None = None,
    ) -> None:
        """Compile wasm_binary and set up output capture.

        Args:
            wasm_binary: Raw WASM module bytes
            io_dir: Optional scratch directory for the file capture strategy;
                overrides config.io_dir when given
            config: Optional ProcessorConfig. If None, uses defaults.
            logger: Optional ProcessorLogger (created if None)

        Raises:
            CompilationError: If wasm_binary is not a valid module
            ScratchIOError: If the scratch directory cannot be created
        """
        config = config or ProcessorConfig()
        if io_dir is not None:
            config = config.model_copy(update={"io_dir": str(io_dir)})
        self.config = config
        self.logger = logger or ProcessorLogger()

        if isinstance(wasm_binary, (bytearray, memoryview)):
            wasm_binary = bytes(wasm_binary)
        if not isinstance(wasm_binary, bytes):
            raise CompilationError(
                f"WASM module must be bytes, got {type(wasm_binary).__name__}"
            )

        self._backend = get_backend(config)

        start_time = time.perf_counter()
        try:
            self.module = self._backend.compile(wasm_binary)
        except CompilationError:
            self._backend.close()
            raise
        self.logger.log_module_compiled(
            backend=self._backend.name,
            size_bytes=self.module.size_bytes,
            digest=self.module.digest,
            duration_ms=(time.perf_counter() - start_time) * 1000,
        )

        try:
            self._capture = create_capture(config.capture, config.io_dir)
        except Exception:
            self._backend.close()
            raise
        if isinstance(self._capture, FileCapture):
            scratch = self._capture.scratch
            self.logger.log_scratch_created(str(scratch.path), scratch.owned)

        self._lock = threading.Lock()
        self._invocations = 0
        self._closed = False

    @classmethod
    def from_file(
        cls,
        path: str | os.PathLike[str],
        io_dir: str | os.PathLike[str] | None = None,
        config: ProcessorConfig | None = None,
        logger: ProcessorLogger | None = None,
    ) -> WasiProcessor:
        """Read a module from disk and build a processor for it.

        Raises:
            FileNotFoundError: If path does not exist
            CompilationError: If the file is not a valid module
        """
        wasm_binary = Path(path).read_bytes()
        return cls(wasm_binary, io_dir=io_dir, config=config, logger=logger)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def scratch_dir(self) -> Path | None:
        """Scratch directory of the file capture strategy, if in use."""
        if isinstance(self._capture, FileCapture):
            return self._capture.scratch.path
        return None

    def _next_invocation_id(self) -> int:
        with self._lock:
            if self._closed:
                raise ProcessorClosedError("processor is closed")
            self._invocations += 1
            return self._invocations

    def _check_outcome(
        self, invocation_id: int, outcome: ExecutionOutcome, stderr: bytes
    ) -> None:
        """Raise the ExecutionError matching how the guest terminated."""
        if outcome.trapped:
            raise TrappedError(
                f"failed to call _start: {outcome.trap_message}",
                trap_reason=outcome.trap_reason,
                stderr=stderr,
                invocation_id=invocation_id,
            )

        exit_code = outcome.exit_code or 0
        if stderr and self.config.fail_on_stderr:
            raise GuestReportedError(stderr, exit_code=exit_code, invocation_id=invocation_id)

        if exit_code != 0:
            raise NonZeroExitError(exit_code, invocation_id=invocation_id)

    def invoke(self, payload: bytes | bytearray | memoryview | str) -> InvocationResult:
        """Run the module once for payload and return output with metrics.

        Args:
            payload: Message contents; str is encoded as UTF-8

        Returns:
            InvocationResult with the captured stdout in output

        Raises:
            ProcessorClosedError: If the processor has been closed
            ExecutionError: If instantiation fails, the guest traps, exits
                nonzero or writes to stderr
            ScratchIOError: If capture files cannot be prepared or read
        """
        invocation_id = self._next_invocation_id()
        module = self.module
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        payload = bytes(payload)

        self.logger.log_invocation_start(
            invocation_id=invocation_id,
            payload_bytes=len(payload),
            capture=self.config.capture.value,
        )

        start_time = time.perf_counter()
        try:
            with self._capture.open_sink(invocation_id) as sink:
                ctx = build_invocation(
                    invocation_id,
                    payload,
                    sink,
                    program_name=self.config.program_name,
                    env=self.config.env,
                )
                outcome = self._backend.run(module, ctx)
                output = sink.drain()
                stderr = sink.drain_stderr()
            self._check_outcome(invocation_id, outcome, stderr)
        except WasiProcessorError as e:
            self.logger.log_invocation_failed(
                e,
                duration_ms=(time.perf_counter() - start_time) * 1000,
                invocation_id=invocation_id,
            )
            raise

        result = InvocationResult(
            output=output,
            stderr=stderr,
            exit_code=outcome.exit_code or 0,
            fuel_consumed=outcome.fuel_consumed,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            invocation_id=invocation_id,
            metadata={
                "backend": self._backend.name,
                "capture": self.config.capture.value,
            },
        )
        self.logger.log_invocation_complete(result)
        return result

    def process(self, payload: bytes | bytearray | memoryview | str) -> bytes:
        """Run the module once for payload and return its stdout bytes."""
        return self.invoke(payload).output

    async def invoke_async(
        self, payload: bytes | bytearray | memoryview | str, timeout: float | None = None
    ) -> InvocationResult:
        """Run invoke() on a worker thread with an optional host-side deadline.

        The guest cannot be interrupted once started, so on timeout the
        worker is detached and keeps running until the guest terminates.
        A configured fuel_budget bounds how long that can be.

        Args:
            payload: Message contents
            timeout: Deadline in seconds; defaults to config.timeout_seconds

        Raises:
            InvocationTimeoutError: If the deadline expires first
        """
        if timeout is None:
            timeout = self.config.timeout_seconds

        call = asyncio.to_thread(self.invoke, payload)
        if timeout is None:
            return await call

        try:
            return await asyncio.wait_for(call, timeout)
        except TimeoutError:
            error = InvocationTimeoutError(timeout)
            self.logger.log_invocation_failed(error, duration_ms=timeout * 1000)
            raise error from None

    async def process_async(
        self, payload: bytes | bytearray | memoryview | str, timeout: float | None = None
    ) -> bytes:
        """Async counterpart of process()."""
        result = await self.invoke_async(payload, timeout=timeout)
        return result.output

    def close(self) -> None:
        """Release the compiled module, engine and scratch resources.

        Idempotent: a second call is a no-op.

        Raises:
            ScratchIOError: If scratch removal fails
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        try:
            removed = self._capture.close()
        finally:
            self._backend.close()
            self.module = None  # type: ignore[assignment]

        self.logger.log_processor_closed(removed_path=removed, invocations=self._invocations)

    def __enter__(self) -> WasiProcessor:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return (
            f"WasiProcessor(backend={self._backend.name}, "
            f"capture={self.config.capture.value}, {state})"
        )
