"""Buildpack lifecycle data model: build plans, contexts, results and layers."""

from __future__ import annotations

import shutil
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Iterable


class BuildpackFailure(Exception):
    """A detection or build failure carrying a formatted message."""

    def __init__(self, message: str, *args: Any) -> None:
        text = message % args if args else message
        super().__init__(text)
        self.message = text


@dataclass
class BuildPlanProvision:
    """A dependency a buildpack offers to provide."""

    name: str


@dataclass
class BuildPlanRequirement:
    """A dependency a buildpack requires, with optional metadata."""

    name: str
    metadata: Any = None


@dataclass
class BuildPlan:
    """What a buildpack provides and requires, plus alternative plans."""

    provides: list[BuildPlanProvision] = field(default_factory=list)
    requires: list[BuildPlanRequirement] = field(default_factory=list)
    or_: list[BuildPlan] = field(default_factory=list)


@dataclass
class BuildpackPlanEntry:
    """One resolved entry of the buildpack plan handed to the build phase."""

    name: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class BuildpackPlan:
    """The resolved entries for one buildpack."""

    entries: list[BuildpackPlanEntry] = field(default_factory=list)


@dataclass
class BuildpackInfo:
    """Identity of the running buildpack and its SBOM formats."""

    name: str = ""
    version: str = ""
    sbom_formats: list[str] = field(default_factory=list)


@dataclass
class DetectContext:
    """Inputs available during the detect phase."""

    working_dir: str | Path
    cnb_path: str | Path = ""
    platform_path: str | Path = ""
    stack: str = ""


@dataclass
class DetectResult:
    """Outcome of a successful detection."""

    plan: BuildPlan = field(default_factory=BuildPlan)


@dataclass
class Layer:
    """A directory under the layers root, with its types and metadata."""

    name: str
    path: Path
    build: bool = False
    launch: bool = False
    cache: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    sbom: tuple = ()
    build_env: dict[str, str] = field(default_factory=dict)
    launch_env: dict[str, str] = field(default_factory=dict)
    process_launch_env: dict[str, dict[str, str]] = field(default_factory=dict)
    shared_env: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def reset(self) -> Layer:
        """Empty the layer directory and clear its flags, metadata and environment."""
        try:
            if self.path.is_dir() and not self.path.is_symlink():
                shutil.rmtree(self.path)
            elif self.path.exists() or self.path.is_symlink():
                self.path.unlink()
        except OSError as exc:
            raise OSError(f"error could not remove directory: {exc}") from exc

        try:
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OSError(f"error could not create directory: {exc}") from exc

        self.build = self.launch = self.cache = False
        self.metadata = {}
        self.sbom = ()
        self.build_env = {}
        self.launch_env = {}
        self.process_launch_env = {}
        self.shared_env = {}
        return self


@dataclass
class Layers:
    """The layers root directory of a buildpack."""

    path: str | Path

    def get(self, name: str) -> Layer:
        """Return the named layer, restoring types and metadata from <name>.toml."""
        root = Path(self.path)
        layer = Layer(name=name, path=root / name)
        content_file = root / f"{name}.toml"
        if content_file.is_file():
            with content_file.open("rb") as handle:
                content = tomllib.load(handle)
            types = content.get("types", content)
            layer.build = bool(types.get("build", False))
            layer.launch = bool(types.get("launch", False))
            layer.cache = bool(types.get("cache", False))
            layer.metadata = dict(content.get("metadata", {}))
        return layer


@dataclass
class BuildContext:
    """Inputs available during the build phase."""

    buildpack_info: BuildpackInfo
    working_dir: str | Path
    layers: Layers
    plan: BuildpackPlan = field(default_factory=BuildpackPlan)
    cnb_path: str | Path = ""
    platform_path: str | Path = ""
    stack: str = ""


@dataclass
class BuildResult:
    """Outcome of a build: the layers to export."""

    layers: list[Layer] = field(default_factory=list)


def combine_plans(*plans: BuildPlan) -> BuildPlan:
    """Make the first plan primary and append the others as alternatives."""
    if not plans:
        return BuildPlan()
    first, *rest = plans
    return replace(first, or_=[*first.or_, *rest])


def without_entry(
    entries: Iterable[BuildpackPlanEntry], name: str
) -> list[BuildpackPlanEntry]:
    """Return the entries whose name differs from ``name``."""
    return [entry for entry in entries if entry.name != name]


def merge_layer_types(
    name: str, entries: Iterable[BuildpackPlanEntry]
) -> tuple[bool, bool]:
    """Return (launch, build) flags requested by entries named ``name``."""
    launch = build = False
    for entry in entries:
        if entry.name != name:
            continue
        metadata = entry.metadata or {}
        launch = launch or metadata.get("launch") is True
        build = build or metadata.get("build") is True
    return launch, build