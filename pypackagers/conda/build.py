"""Build phase of the conda environment packager."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping, Protocol

from pypackagers.common import CommonBuildParameters
from pypackagers.conda.constants import (
    CONDA_ENV_CACHE,
    CONDA_ENV_LAYER,
    CONDA_ENV_PLAN_ENTRY,
    LOCKFILE_SHA_NAME,
)
from pypackagers.packit import BuildContext, BuildResult, merge_layer_types


class Runner(Protocol):
    def execute(
        self, conda_layer_path: str, conda_cache_path: str, working_dir: str
    ) -> None: ...

    def should_run(
        self, working_dir: str, metadata: Mapping[str, Any]
    ) -> tuple[bool, str]: ...


@dataclass
class CondaBuildParameters:
    """Conda specific inputs to the build."""

    runner: Runner


def _format_duration(duration: timedelta) -> str:
    """Render a duration rounded to the millisecond, e.g. ``12ms`` or ``1m2.5s``."""
    total_ms = math.floor(duration.total_seconds() * 1000 + 0.5)
    if total_ms <= 0:
        return "0s"
    if total_ms < 1000:
        return f"{total_ms}ms"
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    whole, fraction = divmod(rest, 1000)
    seconds = f"{whole}.{fraction:03d}".rstrip("0") if fraction else str(whole)
    if hours:
        return f"{hours}h{minutes}m{seconds}s"
    if minutes:
        return f"{minutes}m{seconds}s"
    return f"{seconds}s"


def _worth_exporting(path: Path) -> bool:
    """True when the path exists and is not an empty directory."""
    if not path.exists():
        return False
    if path.is_dir():
        return any(path.iterdir())
    return True


def build(
    build_parameters: CondaBuildParameters,
    parameters: CommonBuildParameters,
    context: BuildContext,
) -> BuildResult:
    """Update the conda environment into a layer, reusing it when the runner allows."""
    runner = build_parameters.runner
    logger = parameters.logger
    clock = parameters.clock
    sbom_generator = parameters.sbom_generator
    info = context.buildpack_info
    working_dir = os.fspath(context.working_dir)

    logger.title("%s %s", info.name, info.version)

    conda_layer = context.layers.get(CONDA_ENV_LAYER)
    cache_layer = context.layers.get(CONDA_ENV_CACHE)

    run, sha = runner.should_run(working_dir, conda_layer.metadata)

    if run:
        conda_layer = conda_layer.reset()

        logger.process("Executing build process")
        _, duration = clock.measure(
            lambda: runner.execute(
                str(conda_layer.path), str(cache_layer.path), working_dir
            )
        )
        logger.action("Completed in %s", _format_duration(duration))
        logger.blank_line()

        logger.generating_sbom(conda_layer.path)
        sbom, duration = clock.measure(lambda: sbom_generator.generate(working_dir))
        logger.action("Completed in %s", _format_duration(duration))
        logger.blank_line()

        logger.formatting_sbom(*info.sbom_formats)
        conda_layer.sbom = sbom.in_formats(*info.sbom_formats)
        conda_layer.metadata = {LOCKFILE_SHA_NAME: sha}
    else:
        logger.process("Reusing cached layer %s", conda_layer.path)
        logger.blank_line()

    conda_layer.launch, conda_layer.build = merge_layer_types(
        CONDA_ENV_PLAN_ENTRY, context.plan.entries
    )
    conda_layer.cache = conda_layer.build
    cache_layer.cache = True

    layers = [conda_layer]
    if _worth_exporting(cache_layer.path):
        layers.append(cache_layer)

    return BuildResult(layers=layers)