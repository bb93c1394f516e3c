"""Detection of conda environment projects."""

from __future__ import annotations

import os

from pypackagers.conda.constants import (
    CONDA_ENV_PLAN_ENTRY,
    CONDA_PLAN_ENTRY,
    ENVIRONMENT_FILE_NAME,
    LOCKFILE_NAME,
)
from pypackagers.packit import (
    BuildPlan,
    BuildPlanProvision,
    BuildPlanRequirement,
    BuildpackFailure,
    DetectContext,
    DetectResult,
)


def _file_present(working_dir: str, name: str) -> bool:
    try:
        os.stat(os.path.join(working_dir, name))
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise BuildpackFailure("failed trying to stat %s: %s", name, exc) from exc
    return True


def detect(context: DetectContext) -> DetectResult:
    """Pass when environment.yml or package-list.txt is in the app directory."""
    working_dir = os.fspath(context.working_dir)
    has_environment = _file_present(working_dir, ENVIRONMENT_FILE_NAME)
    has_lockfile = _file_present(working_dir, LOCKFILE_NAME)

    if not has_environment and not has_lockfile:
        raise BuildpackFailure("no 'environment.yml' and 'package-list.txt' found")

    return DetectResult(
        plan=BuildPlan(
            provides=[BuildPlanProvision(name=CONDA_ENV_PLAN_ENTRY)],
            requires=[
                BuildPlanRequirement(name=CONDA_PLAN_ENTRY, metadata={"build": True})
            ],
        )
    )