"""Factory function for creating processors from configuration.

Provides create_processor() which loads the module named by the config,
selects the backend and capture strategy, and returns a ready WasiProcessor.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from wasi_processor.config import load_config
from wasi_processor.core.errors import ProcessorConfigError
from wasi_processor.core.logging import ProcessorLogger
from wasi_processor.core.models import ProcessorConfig
from wasi_processor.processor import WasiProcessor


def create_processor(
    config: ProcessorConfig | str | Path | None = None,
    logger: ProcessorLogger | None = None,
    **overrides: Any,
) -> WasiProcessor:
    """Create a WasiProcessor for the module named in the configuration.

    Args:
        config: ProcessorConfig, path to a TOML config file, or None for
                defaults (then `path` must be given as an override)
        logger: Optional ProcessorLogger. If None, the processor creates one.
        **overrides: Config fields that take precedence over config
                     (e.g., path="module.wasm", capture="file")

    Returns:
        WasiProcessor with the module compiled and capture set up

    Raises:
        ProcessorConfigError: If the config is invalid or names no module path
        FileNotFoundError: If the module file does not exist
        CompilationError: If the module is not valid

    Examples:
        >>> processor = create_processor(path="filters/upper.wasm")
        >>> processor.process(b"hello world")

        >>> processor = create_processor("config/processor.toml", capture="file")
    """
    if config is None:
        config = ProcessorConfig()
    elif isinstance(config, (str, Path)):
        config = load_config(str(config))

    if overrides:
        merged = config.model_dump() | overrides
        config = ProcessorConfig(**merged)

    if not config.path:
        raise ProcessorConfigError("Processor config must set 'path' to a WASI module")

    return WasiProcessor.from_file(config.path, config=config, logger=logger)
