"""Shared pytest fixtures for all tests.

Guest modules are written in WebAssembly text and compiled with
wasmtime.wat2wasm so the suite needs no prebuilt binaries.
"""

from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path

import pytest
import structlog
from wasmtime import wat2wasm

from wasi_processor.core.logging import ProcessorLogger

# For every argv entry, print upper(arg) + " WASM RULES\n"
UPPER_WAT = r"""
(module
  (import "wasi_snapshot_preview1" "args_sizes_get"
    (func $args_sizes_get (param i32 i32) (result i32)))
  (import "wasi_snapshot_preview1" "args_get"
    (func $args_get (param i32 i32) (result i32)))
  (import "wasi_snapshot_preview1" "fd_write"
    (func $fd_write (param i32 i32 i32 i32) (result i32)))
  (memory (export "memory") 4)
  (data (i32.const 16) " WASM RULES\n")

  (func $write (param $fd i32) (param $ptr i32) (param $len i32)
    (i32.store (i32.const 32) (local.get $ptr))
    (i32.store (i32.const 36) (local.get $len))
    (drop (call $fd_write (local.get $fd) (i32.const 32) (i32.const 1) (i32.const 40))))

  (func (export "_start")
    (local $argc i32) (local $i i32) (local $p i32) (local $s i32) (local $c i32)
    (drop (call $args_sizes_get (i32.const 0) (i32.const 4)))
    (local.set $argc (i32.load (i32.const 0)))
    (drop (call $args_get (i32.const 1024) (i32.const 4096)))
    (block $done
      (loop $next
        (br_if $done (i32.ge_u (local.get $i) (local.get $argc)))
        (local.set $s
          (i32.load (i32.add (i32.const 1024) (i32.shl (local.get $i) (i32.const 2)))))
        (local.set $p (local.get $s))
        (block $end
          (loop $scan
            (local.set $c (i32.load8_u (local.get $p)))
            (br_if $end (i32.eqz (local.get $c)))
            (if (i32.and (i32.ge_u (local.get $c) (i32.const 97))
                         (i32.le_u (local.get $c) (i32.const 122)))
              (then
                (i32.store8 (local.get $p) (i32.sub (local.get $c) (i32.const 32)))))
            (local.set $p (i32.add (local.get $p) (i32.const 1)))
            (br $scan)))
        (call $write (i32.const 1) (local.get $s) (i32.sub (local.get $p) (local.get $s)))
        (call $write (i32.const 1) (i32.const 16) (i32.const 12))
        (local.set $i (i32.add (local.get $i) (i32.const 1)))
        (br $next))))
)
"""

TRAP_WAT = """
(module
  (memory (export "memory") 1)
  (func (export "_start") unreachable))
"""

LOOP_WAT = """
(module
  (memory (export "memory") 1)
  (func (export "_start") (loop $forever (br $forever))))
"""

MISSING_IMPORT_WAT = """
(module
  (import "env" "host_only" (func $host_only))
  (memory (export "memory") 1)
  (func (export "_start") (call $host_only)))
"""

NO_START_WAT = """
(module
  (memory (export "memory") 1)
  (func (export "run")))
"""

# Grows memory by 1000 pages; exits 7 if the grow is refused
GROW_WAT = """
(module
  (import "wasi_snapshot_preview1" "proc_exit" (func $proc_exit (param i32)))
  (memory (export "memory") 1)
  (func (export "_start")
    (if (i32.lt_s (memory.grow (i32.const 1000)) (i32.const 0))
      (then (call $proc_exit (i32.const 7))))))
"""


def _wat_bytes(data: bytes) -> str:
    """Escape arbitrary bytes as a WAT data string."""
    return "".join(f"\\{b:02x}" for b in data)


def build_guest(
    stdout: bytes = b"",
    stderr: bytes = b"",
    exit_code: int | None = None,
    trap: bool = False,
) -> bytes:
    """Compile a guest that writes fixed bytes to stdout/stderr, then exits or traps."""
    body = []
    if stdout:
        body.append(f"(call $write (i32.const 1) (i32.const 1024) (i32.const {len(stdout)}))")
    if stderr:
        body.append(f"(call $write (i32.const 2) (i32.const 8192) (i32.const {len(stderr)}))")
    if trap:
        body.append("unreachable")
    elif exit_code is not None:
        body.append(f"(call $proc_exit (i32.const {exit_code}))")
    body_text = " ".join(body)

    wat = f"""
(module
  (import "wasi_snapshot_preview1" "fd_write"
    (func $fd_write (param i32 i32 i32 i32) (result i32)))
  (import "wasi_snapshot_preview1" "proc_exit" (func $proc_exit (param i32)))
  (memory (export "memory") 1)
  (data (i32.const 1024) "{_wat_bytes(stdout)}")
  (data (i32.const 8192) "{_wat_bytes(stderr)}")
  (func $write (param $fd i32) (param $ptr i32) (param $len i32)
    (i32.store (i32.const 0) (local.get $ptr))
    (i32.store (i32.const 4) (local.get $len))
    (drop (call $fd_write (local.get $fd) (i32.const 0) (i32.const 1) (i32.const 8))))
  (func (export "_start")
    {body_text}))
"""
    return bytes(wat2wasm(wat))


@pytest.fixture
def guest_module() -> Callable[..., bytes]:
    """Builder for guests with fixed stdout/stderr bytes and termination."""
    return build_guest


@pytest.fixture(scope="session")
def upper_wasm() -> bytes:
    """Guest printing upper(arg) + " WASM RULES\\n" for every argv entry."""
    return bytes(wat2wasm(UPPER_WAT))


@pytest.fixture(scope="session")
def trap_wasm() -> bytes:
    return bytes(wat2wasm(TRAP_WAT))


@pytest.fixture(scope="session")
def loop_wasm() -> bytes:
    return bytes(wat2wasm(LOOP_WAT))


@pytest.fixture(scope="session")
def missing_import_wasm() -> bytes:
    return bytes(wat2wasm(MISSING_IMPORT_WAT))


@pytest.fixture(scope="session")
def no_start_wasm() -> bytes:
    return bytes(wat2wasm(NO_START_WAT))


@pytest.fixture(scope="session")
def grow_wasm() -> bytes:
    return bytes(wat2wasm(GROW_WAT))


@pytest.fixture
def temp_io_dir():
    """Caller-supplied scratch directory for file capture tests."""
    with tempfile.TemporaryDirectory(
        prefix="test-io-dir-", ignore_cleanup_errors=True
    ) as tmpdir:
        yield Path(tmpdir)


class StructlogCapture:
    """Helper to capture structlog events."""

    def __init__(self) -> None:
        self.events: list[dict] = []

    def __call__(self, logger, method_name: str, event_dict: dict) -> dict:
        """Capture event dict (structlog processor signature)."""
        self.events.append(event_dict.copy())
        return event_dict

    def of_type(self, event: str) -> list[dict]:
        return [e for e in self.events if e.get("event") == event]


@pytest.fixture
def log_capture() -> StructlogCapture:
    return StructlogCapture()


@pytest.fixture
def capture_logger(log_capture: StructlogCapture) -> ProcessorLogger:
    """ProcessorLogger whose events are recorded in log_capture."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            log_capture,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )
    return ProcessorLogger(structlog.get_logger("test-processor"))
