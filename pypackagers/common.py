"""Shared build parameters: SBOM generation and timing."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import timedelta
from email.parser import HeaderParser
from pathlib import Path
from typing import Any, Callable, TypeVar

from pypackagers.logger import Emitter

CYCLONEDX_FORMAT = "application/vnd.cyclonedx+json"
SPDX_FORMAT = "application/spdx+json"
SYFT_FORMAT = "application/vnd.syft+json"

T = TypeVar("T")

Package = tuple[str, str]


def _cyclonedx(packages: tuple[Package, ...]) -> str:
    return json.dumps(
        {
            "bomFormat": "CycloneDX",
            "specVersion": "1.4",
            "version": 1,
            "components": [
                {"type": "library", "name": name, "version": version}
                for name, version in packages
            ],
        },
        indent=2,
    )


def _spdx(packages: tuple[Package, ...]) -> str:
    return json.dumps(
        {
            "spdxVersion": "SPDX-2.2",
            "dataLicense": "CC0-1.0",
            "SPDXID": "SPDXRef-DOCUMENT",
            "name": "sbom",
            "packages": [
                {
                    "SPDXID": f"SPDXRef-Package-{index}",
                    "name": name,
                    "versionInfo": version,
                }
                for index, (name, version) in enumerate(packages)
            ],
        },
        indent=2,
    )


def _syft(packages: tuple[Package, ...]) -> str:
    return json.dumps(
        {"artifacts": [{"name": name, "version": version} for name, version in packages]},
        indent=2,
    )


_RENDERERS: dict[str, tuple[str, Callable[[tuple[Package, ...]], str]]] = {
    CYCLONEDX_FORMAT: ("cdx.json", _cyclonedx),
    SPDX_FORMAT: ("spdx.json", _spdx),
    SYFT_FORMAT: ("syft.json", _syft),
}


@dataclass(frozen=True)
class SBOMFormat:
    """An SBOM rendered in one media type."""

    media_type: str
    extension: str
    content: str


@dataclass(frozen=True)
class SBOM:
    """A software bill of materials: the (name, version) packages found."""

    packages: tuple[Package, ...] = ()

    def in_formats(self, *formats: str) -> tuple[SBOMFormat, ...]:
        """Render the SBOM in each requested media type."""
        rendered = []
        for media_type in formats:
            base = media_type.split(";", 1)[0].strip()
            try:
                extension, render = _RENDERERS[base]
            except KeyError:
                raise ValueError(f"unsupported SBOM format: '{media_type}'") from None
            rendered.append(SBOMFormat(base, extension, render(self.packages)))
        return tuple(rendered)


def _read_dist_info(directory: Path) -> Package | None:
    for filename in ("METADATA", "PKG-INFO"):
        metadata_file = directory / filename
        if metadata_file.is_file():
            headers = HeaderParser().parsestr(
                metadata_file.read_text(encoding="utf-8", errors="replace")
            )
            name, version = headers.get("Name"), headers.get("Version")
            if name and version:
                return name.strip(), version.strip()
    return None


def _read_conda_meta(record: Path) -> Package | None:
    try:
        data = json.loads(record.read_text(encoding="utf-8"))
    except (ValueError, OSError):
        return None
    if isinstance(data, dict) and data.get("name") and data.get("version"):
        return str(data["name"]), str(data["version"])
    return None


class Generator:
    """Builds an SBOM from Python and conda package metadata under a directory."""

    def generate(self, directory: str | Path) -> SBOM:
        root = Path(directory)
        if not root.is_dir():
            raise FileNotFoundError(f"no such directory: {root}")
        found: set[Package] = set()
        for path in root.rglob("*"):
            package = None
            if path.is_dir() and path.suffix in (".dist-info", ".egg-info"):
                package = _read_dist_info(path)
            elif path.suffix == ".json" and path.parent.name == "conda-meta":
                package = _read_conda_meta(path)
            if package is not None:
                found.add(package)
        return SBOM(tuple(sorted(found)))


@dataclass(frozen=True)
class Clock:
    """Measures how long a callable takes."""

    now: Callable[[], float] = time.monotonic

    def measure(self, func: Callable[[], T]) -> tuple[T, timedelta]:
        """Call ``func`` and return its result with the elapsed time."""
        start = self.now()
        result = func()
        return result, timedelta(seconds=self.now() - start)


@dataclass
class CommonBuildParameters:
    """Parameters shared by every packager's build."""

    logger: Emitter
    sbom_generator: Any = field(default_factory=Generator)
    clock: Clock = field(default_factory=Clock)