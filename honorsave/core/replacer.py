"""Directory replacer — delete and repopulate save trees, tolerating locked files."""

from __future__ import annotations

import os
import platform
import shutil
import stat
import subprocess
import tempfile
from pathlib import Path

from loguru import logger

from honorsave.core.errors import ReplaceError

# robocopy exit codes >= 8 mean at least one failure
_ROBOCOPY_FAILURE = 8


def _make_writable(path: Path) -> None:
    mode = os.lstat(path).st_mode
    os.chmod(path, stat.S_IMODE(mode) | stat.S_IWRITE | stat.S_IREAD | (stat.S_IEXEC if stat.S_ISDIR(mode) else 0))


def normalize_attributes(root: Path) -> None:
    """Clear read-only bits on *root* and everything beneath it."""
    if root.is_symlink():
        return
    _make_writable(root)
    for dirpath, dirnames, filenames in os.walk(root):
        for name in dirnames:
            child = Path(dirpath) / name
            if not child.is_symlink():
                _make_writable(child)
        for name in filenames:
            child = Path(dirpath) / name
            if not child.is_symlink():
                _make_writable(child)


class DirectoryReplacer:
    """
    Shared delete/copy primitive for backup, restore and quicksave.

    Copies are not transactional: a failure mid-copy leaves a partial
    destination behind and surfaces as :class:`ReplaceError`.
    """

    def copy_tree(self, source: Path, dest: Path) -> None:
        """Copy *source* onto *dest*, creating it and overwriting files."""
        if not source.is_dir():
            raise ReplaceError(f"Source directory not found: {source}")
        try:
            shutil.copytree(source, dest, dirs_exist_ok=True, copy_function=self._copy_file)
        except (shutil.Error, OSError) as e:
            raise ReplaceError(f"Failed to copy {source} to {dest}: {e}") from e
        logger.debug(f"Copied {source} -> {dest}")

    def replace(self, source: Path, dest: Path) -> None:
        """Make *dest* an exact mirror of *source*."""
        if not source.is_dir():
            raise ReplaceError(f"Source directory not found: {source}")
        self.delete(dest)
        self.copy_tree(source, dest)

    def delete(self, path: Path) -> None:
        """
        Remove a directory tree.

        Tries a plain recursive delete, then mirrors an empty directory onto
        the target, then strips read-only attributes and retries.  Raises
        :class:`ReplaceError` only when all three fail.  A symlinked *path*
        is unlinked without touching the directory it points at.
        """
        if path.is_symlink():
            # Only the link goes; the directory it points at is left intact
            try:
                path.unlink()
            except OSError as e:
                raise ReplaceError(f"Could not remove link {path}: {e}") from e
            logger.info(f"Removed symlinked folder {path}")
            return
        if not path.exists():
            return

        try:
            shutil.rmtree(path)
            return
        except OSError as e:
            logger.warning(f"Direct delete of {path} failed, mirroring empty directory: {e}")

        try:
            self._mirror_empty(path)
            if not path.exists():
                return
        except OSError as e:
            logger.warning(f"Empty-mirror delete of {path} failed: {e}")

        try:
            normalize_attributes(path)
            shutil.rmtree(path)
        except OSError as e:
            raise ReplaceError(f"Could not delete {path}: {e}") from e
        logger.info(f"Deleted {path} after clearing read-only attributes")

    @staticmethod
    def _copy_file(src: str, dst: str) -> str:
        # An existing read-only target would refuse the overwrite
        if os.path.exists(dst) and not os.access(dst, os.W_OK):
            _make_writable(Path(dst))
        return shutil.copy2(src, dst)

    def _mirror_empty(self, path: Path) -> None:
        """Sync *path* against an empty directory, then remove the emptied target."""
        with tempfile.TemporaryDirectory(prefix="honorsave_empty_") as empty:
            if platform.system() == "Windows":
                proc = subprocess.run(  # noqa: S603, S607
                    ["robocopy", empty, str(path), "/MIR", "/R:0", "/W:0", "/NFL", "/NDL", "/NJH", "/NJS"],
                    capture_output=True,
                    text=True,
                )
                if proc.returncode >= _ROBOCOPY_FAILURE:
                    raise OSError(f"robocopy exited with {proc.returncode}")
            else:
                self._purge_against_empty(Path(empty), path)
        path.rmdir()

    @staticmethod
    def _purge_against_empty(empty: Path, target: Path) -> None:
        # Nothing in *empty* survives the mirror, so every entry of *target*
        # is removed bottom-up with its permission bits reset first.
        if any(empty.iterdir()):
            raise OSError(f"Reference directory is not empty: {empty}")
        if target.is_symlink():
            raise OSError(f"Refusing to purge through symlink: {target}")
        normalize_attributes(target)
        for dirpath, dirnames, filenames in os.walk(target, topdown=False):
            parent = Path(dirpath)
            for name in filenames:
                (parent / name).unlink()
            for name in dirnames:
                child = parent / name
                if child.is_symlink():
                    child.unlink()
                else:
                    child.rmdir()
        logger.debug(f"Mirrored empty directory onto {target}")
