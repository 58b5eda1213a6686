"""Configuration loading for WASI processors.

Provides default processor settings and TOML-based configuration loading.
"""

from __future__ import annotations

import os
import tomllib
from typing import Any

from pydantic import ValidationError

from wasi_processor.core.errors import ProcessorConfigError
from wasi_processor.core.models import DEFAULT_PROGRAM_NAME, ProcessorConfig

DEFAULT_CONFIG: dict[str, Any] = {
    # Buffered capture keeps no state between invocations
    "capture": "buffered",
    "backend": "wasmtime",

    # Guest argv[0]; the payload is always argv[1]
    "program_name": DEFAULT_PROGRAM_NAME,

    # No ambient authority: nothing beyond standard streams unless granted
    "env": {},
    "readonly_mounts": [],

    # Guest stderr output fails the invocation
    "fail_on_stderr": True,
}


def load_config(path: str = "config/processor.toml") -> ProcessorConfig:
    """Load and merge a TOML processor configuration with defaults.

    Performs a shallow merge of the file's settings over DEFAULT_CONFIG. The
    env table is deep-merged so a file can add variables without restating
    the defaults. A [processor] table, when present, is used as the root.

    Args:
        path: Path to the TOML file. If the file doesn't exist, returns
              ProcessorConfig with defaults.

    Returns:
        ProcessorConfig: Validated configuration model.

    Raises:
        ProcessorConfigError: If the configuration contains invalid values
        tomllib.TOMLDecodeError: If the TOML file is malformed
        OSError: If the file exists but cannot be read
    """
    if not os.path.exists(path):
        return ProcessorConfig(**DEFAULT_CONFIG)

    with open(path, "rb") as f:
        data = tomllib.load(f)

    data = data.get("processor", data)

    config = DEFAULT_CONFIG | data
    config["env"] = DEFAULT_CONFIG["env"] | data.get("env", {})

    # Relative module and scratch paths are resolved against the file location
    base_dir = os.path.dirname(os.path.abspath(path))
    for key in ("path", "io_dir"):
        value = config.get(key)
        if isinstance(value, str) and value and not os.path.isabs(value):
            config[key] = os.path.join(base_dir, value)

    try:
        return ProcessorConfig(**config)
    except ProcessorConfigError:
        raise
    except ValidationError as e:
        raise ProcessorConfigError(f"Config validation failed: {e}") from e
