"""Per-invocation sandbox construction.

build_invocation() turns one payload into an InvocationContext: the guest
argument vector, environment, and the capture sink its streams go to.
Contexts are short-lived and never shared between invocations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wasi_processor.capture import CaptureSink


@dataclass
class InvocationContext:
    """Isolated execution environment for one payload.

    Attributes:
        invocation_id: Sequential id within the processor
        argv: Guest argument vector: (program_name, payload_text)
        sink: CaptureSink receiving guest stdout/stderr
        env: Environment variables exposed to the guest
    """

    invocation_id: int
    argv: tuple[str, str]
    sink: CaptureSink
    env: dict[str, str] = field(default_factory=dict)

    @property
    def payload_text(self) -> str:
        return self.argv[1]


def payload_to_arg(payload: bytes) -> str:
    """Decode payload bytes into the guest argument.

    WASI argv crosses the host boundary as UTF-8 C strings, so undecodable
    sequences are replaced rather than rejected. The guest decides what to
    make of the text.

    A NUL byte ends the C string: the guest sees only the text before the
    first NUL (b"ab\\x00cd" arrives as "ab").
    """
    return payload.decode("utf-8", errors="replace")


def build_invocation(
    invocation_id: int,
    payload: bytes,
    sink: CaptureSink,
    program_name: str,
    env: dict[str, str] | None = None,
) -> InvocationContext:
    """Build the InvocationContext for one payload. Never fails on payload content."""
    return InvocationContext(
        invocation_id=invocation_id,
        argv=(program_name, payload_to_arg(payload)),
        sink=sink,
        env=dict(env or {}),
    )
