"""Scratch directory lifecycle for file-redirected output capture.

ScratchDirectory owns the directory used by the file capture strategy. A
directory created here is removed recursively on cleanup; a caller-supplied
directory is never removed, only the scratch files this processor wrote
into it.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import uuid
from pathlib import Path

from wasi_processor.core.errors import ScratchIOError

SCRATCH_DIR_PREFIX = "wasi_processor_"
SCRATCH_FILE_PREFIX = "tmp"
STREAM_SUFFIXES = (".stdout", ".stderr")


class ScratchDirectory:
    """Directory plus scratch file naming for one processor instance.

    Scratch file names carry a per-instance token so several processors can
    share one caller-supplied directory.

    Attributes:
        path: Absolute scratch directory path
        owned: True if the directory was created here and is removed on cleanup
        instance_token: Random token prefixing this instance's scratch files
    """

    def __init__(self, io_dir: str | os.PathLike[str] | None = None) -> None:
        """Use io_dir, or create a fresh temporary directory when None.

        A caller-supplied directory must stay writable for the processor's
        lifetime; it is not re-validated per invocation.

        Raises:
            ScratchIOError: If the temporary directory cannot be created
        """
        if io_dir is None or str(io_dir) == "":
            try:
                self.path = Path(tempfile.mkdtemp(prefix=SCRATCH_DIR_PREFIX))
            except OSError as e:
                raise ScratchIOError(f"failed to create scratch directory: {e}") from e
            self.owned = True
        else:
            self.path = Path(io_dir).resolve()
            self.owned = False
        self.instance_token = uuid.uuid4().hex[:12]

    def stream_paths(self, token: str) -> tuple[Path, Path]:
        """Return the (stdout, stderr) scratch file paths for a token."""
        base = f"{SCRATCH_FILE_PREFIX}-{self.instance_token}-{token}"
        return self.path / f"{base}.stdout", self.path / f"{base}.stderr"

    def scratch_files(self) -> list[Path]:
        """List scratch files currently present in the directory."""
        try:
            candidates = list(self.path.glob(f"{SCRATCH_FILE_PREFIX}-{self.instance_token}-*"))
        except OSError:
            return []
        return [p for p in candidates if p.suffix in STREAM_SUFFIXES]

    def cleanup(self) -> str | None:
        """Remove the scratch directory or the scratch files within it.

        Idempotent: missing paths are not errors.

        Returns:
            The path that was removed (directory or scratch dir), or None if
            nothing was present

        Raises:
            ScratchIOError: If removal fails for a reason other than absence
        """
        if self.owned:
            if not self.path.exists():
                return None
            try:
                shutil.rmtree(self.path)
            except FileNotFoundError:
                return None
            except OSError as e:
                raise ScratchIOError(f"failed to remove scratch directory {self.path}: {e}") from e
            return str(self.path)

        removed = False
        for scratch_file in self.scratch_files():
            try:
                scratch_file.unlink()
                removed = True
            except FileNotFoundError:
                continue
            except OSError as e:
                raise ScratchIOError(f"failed to remove scratch file {scratch_file}: {e}") from e
        return str(self.path) if removed else None
