"""Setting up a conda environment through an injected conda executable."""

from __future__ import annotations

import os
import shutil
import stat
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from pypackagers.conda.constants import (
    ENVIRONMENT_FILE_NAME,
    LOCKFILE_NAME,
    LOCKFILE_SHA_NAME,
)
from pypackagers.logger import Emitter


@dataclass
class Execution:
    """One invocation of the conda executable."""

    args: list[str]
    env: dict[str, str] | None = None
    stdout: Any = None
    stderr: Any = None


class Executable(Protocol):
    def execute(self, execution: Execution) -> None: ...


class Summer(Protocol):
    def sum(self, *paths: str) -> str: ...


class CondaCommandError(RuntimeError):
    """Raised when a conda command fails."""

    def __init__(self, reason: object) -> None:
        super().__init__(f"failed to run conda command: {reason}")
        self.reason = reason


def _exists(path: str) -> bool:
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def _remove_all(path: str) -> None:
    try:
        info = os.lstat(path)
    except FileNotFoundError:
        return
    if stat.S_ISDIR(info.st_mode):
        shutil.rmtree(path)
    else:
        os.remove(path)


class CondaRunner:
    """Decides whether to rebuild the conda environment and builds it."""

    def __init__(self, executable: Executable, summer: Summer, logger: Emitter) -> None:
        self._executable = executable
        self._summer = summer
        self._logger = logger

    def should_run(
        self, working_dir: str | os.PathLike, metadata: Mapping[str, Any]
    ) -> tuple[bool, str]:
        """Return whether to rebuild, and the lockfile checksum ("" without one)."""
        lockfile = os.path.join(os.fspath(working_dir), LOCKFILE_NAME)
        try:
            os.stat(lockfile)
        except FileNotFoundError:
            return True, ""

        sha = self._summer.sum(lockfile)
        if sha == (metadata or {}).get(LOCKFILE_SHA_NAME):
            return False, sha
        return True, sha

    def _run(self, args: list[str], env: dict[str, str] | None = None) -> None:
        writer = self._logger.action_writer()
        try:
            self._executable.execute(
                Execution(args=list(args), env=env, stdout=writer, stderr=writer)
            )
        except Exception as exc:
            raise CondaCommandError(exc) from exc

    def _remove_history(self, history_file: str) -> None:
        self._logger.subprocess("Removing %s", history_file)
        _remove_all(history_file)

    def execute(
        self,
        conda_layer_path: str | os.PathLike,
        conda_cache_path: str | os.PathLike,
        working_dir: str | os.PathLike,
    ) -> None:
        """Create or update the environment in the layer, then clean up.

        A vendor directory means an offline install from vendored packages;
        otherwise the lockfile, if any, creates the environment, and failing
        that environment.yml updates it.
        """
        layer = os.fspath(conda_layer_path)
        cache = os.fspath(conda_cache_path)
        work = os.fspath(working_dir)

        vendor_dir = os.path.join(work, "vendor")
        vendored = _exists(vendor_dir)
        has_lockfile = _exists(os.path.join(work, LOCKFILE_NAME))
        history_file = os.path.join(layer, "conda-meta", "history")

        args = [
            "create",
            "--file", os.path.join(work, LOCKFILE_NAME),
            "--prefix", layer,
            "--yes",
            "--quiet",
        ]

        if vendored:
            vendor_args = [
                "--channel", vendor_dir,
                "--override-channels",
                "--offline",
            ]
            args.extend(vendor_args)

            # The vendor channel content is otherwise not picked up.
            search_args = ["search", "--quiet", *vendor_args]
            self._logger.subprocess("Running 'conda %s'", " ".join(search_args))
            self._run(search_args)

            self._logger.subprocess("Running 'conda %s'", " ".join(args))
            self._run(args)
            self._remove_history(history_file)
            return

        if not has_lockfile:
            args = [
                "env",
                "update",
                "--prefix", layer,
                "--file", os.path.join(work, ENVIRONMENT_FILE_NAME),
            ]

        self._logger.subprocess(
            "Running 'CONDA_PKGS_DIRS=%s conda %s'", cache, " ".join(args)
        )
        self._run(args, env={**os.environ, "CONDA_PKGS_DIRS": cache})

        clean_args = ["clean", "--packages", "--tarballs"]
        self._logger.subprocess("Running 'conda %s'", " ".join(clean_args))
        self._run(clean_args)

        self._remove_history(history_file)