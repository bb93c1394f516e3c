# pypackagers

`pypackagers` holds the detect and build steps that turn an application's
conda environment description into a reusable layer directory. It also holds
the data model those steps share: build plans, contexts, layers, an indented
logger and a small SBOM generator.

## Installation

```
pip install pypackagers
```

To run the test suite:

```
pip install "pypackagers[test]"
pytest
```

## The shared pieces

- `pypackagers.packit`
  - `BuildPlan`, `BuildPlanProvision` and `BuildPlanRequirement` describe what
    a detect step provides and requires. `BuildPlan.or_` lists alternative
    plans.
  - `BuildpackPlan` and `BuildpackPlanEntry` are what a build step receives.
  - `DetectContext`, `DetectResult`, `BuildContext`, `BuildResult` and
    `BuildpackInfo` carry the inputs and outputs of each step.
  - `Layers.get(name)` returns a `Layer` at `<layers>/<name>`. If
    `<layers>/<name>.toml` exists, the layer's build, launch and cache flags
    and its metadata are read from that file.
  - `Layer.reset()` empties the layer directory and clears its flags,
    metadata, SBOM and environment. It raises `OSError` when the directory
    cannot be removed or created.
  - `BuildpackFailure` is raised when detection or a build cannot go on.
  - `combine_plans(*plans)` keeps the first plan and appends the rest to its
    alternatives.
  - `without_entry(entries, name)` drops the plan entries with a given name.
  - `merge_layer_types(name, entries)` returns the `(launch, build)` flags
    that the entries with that name request in their metadata.
- `pypackagers.logger.Emitter` writes to a text stream at four indent levels:
  - `title` writes at no indent;
  - `process` indents by two spaces;
  - `subprocess` and `detail` indent by four;
  - `action` indents by six.

  `action_writer()` returns a file-like object that indents command output at
  the action level.
- `pypackagers.common`
  - `Generator.generate(directory)` walks a directory. It collects
    `(name, version)` pairs from `*.dist-info` / `*.egg-info` metadata and
    from `conda-meta/*.json` records, and returns an `SBOM`.
  - `SBOM.in_formats(*media_types)` renders it as CycloneDX
    (`application/vnd.cyclonedx+json`), SPDX (`application/spdx+json`) or
    Syft (`application/vnd.syft+json`) JSON. Any other media type raises
    `ValueError`.
  - `Clock.measure(func)` returns `(result, elapsed_timedelta)`.
  - `CommonBuildParameters(logger, sbom_generator=Generator(), clock=Clock())`
    bundles these for a build step.

## Conda environments

### Detection

`pypackagers.conda.detect.detect(context)` passes when the working directory
holds `environment.yml` or `package-list.txt`. Its plan provides
`conda-environment` and requires `conda` at build time. Otherwise it raises
`BuildpackFailure`.

```python
from pypackagers.packit import DetectContext
from pypackagers.conda.detect import detect

result = detect(DetectContext(working_dir="/workspace"))
print(result.plan.provides[0].name)   # conda-environment
```

### Deciding whether to rebuild

`pypackagers.conda.runner.CondaRunner(executable, summer, logger)` needs two
objects from you:

- `executable.execute(execution)` runs conda. It receives an `Execution` with
  `args`, `env` (or `None`), `stdout` and `stderr`, and raises to signal
  failure.
- `summer.sum(*paths)` returns a checksum string for the given files.

`should_run(working_dir, metadata)` returns `(True, "")` when there is no
`package-list.txt`. Otherwise it computes the lock file's checksum with the
summer. It returns `(False, sha)` when that checksum equals the
`lockfile-sha` value in the metadata, and `(True, sha)` when it does not.

### Installing

`execute(layer_path, cache_path, working_dir)` picks one of three ways to
install:

- **With a `vendor` directory:** it runs `conda search --quiet` against the
  vendor channel. It then runs `conda create --file package-list.txt --prefix
  <layer> --yes --quiet --channel <vendor> --override-channels --offline`.
- **With `package-list.txt`:** it runs `conda create --file ... --prefix ...
  --yes --quiet` with `CONDA_PKGS_DIRS=<cache_path>`, then `conda clean
  --packages --tarballs`.
- **Otherwise:** it runs `conda env update --prefix <layer> --file
  environment.yml` with `CONDA_PKGS_DIRS=<cache_path>`, then `conda clean
  --packages --tarballs`.

In every case it then removes `<layer>/conda-meta/history`. A failing command
raises `CondaCommandError`, whose message starts with
`failed to run conda command:`.

### The build step

`pypackagers.conda.build.build(CondaBuildParameters(runner), common, context)`
works in these steps:

1. It fetches the `conda-env` and `conda-env-cache` layers.
2. It asks the runner whether to rebuild.
3. If a rebuild is needed, it resets the `conda-env` layer and runs the
   runner. It then generates an SBOM of the working directory in the
   buildpack's SBOM formats, and stores `{"lockfile-sha": sha}` as the layer
   metadata.
4. If no rebuild is needed, it keeps the layer as it is.

It sets the layer's launch and build flags from the `conda-environment` plan
entries. The layer is cached when it is a build layer. The cache layer is
always marked for caching, and is returned only when it exists and is not
empty.

```python
import hashlib
import sys
from pathlib import Path

from pypackagers.common import CommonBuildParameters
from pypackagers.conda.build import CondaBuildParameters, build
from pypackagers.conda.runner import CondaRunner
from pypackagers.logger import Emitter
from pypackagers.packit import (
    BuildContext, BuildpackInfo, BuildpackPlan, BuildpackPlanEntry, Layers,
)


class Sha256Summer:
    def sum(self, *paths):
        digest = hashlib.sha256()
        for path in paths:
            digest.update(Path(path).read_bytes())
        return digest.hexdigest()


logger = Emitter(sys.stdout)
runner = CondaRunner(executable, Sha256Summer(), logger)  # executable: yours
context = BuildContext(
    buildpack_info=BuildpackInfo(
        name="Conda Env", version="1.0.0",
        sbom_formats=["application/vnd.cyclonedx+json"],
    ),
    working_dir="/workspace",
    layers=Layers("/layers"),
    plan=BuildpackPlan([BuildpackPlanEntry("conda-environment", {"launch": True})]),
)
result = build(CondaBuildParameters(runner), CommonBuildParameters(logger), context)
for layer in result.layers:
    print(layer.name, layer.path, layer.launch, layer.cache)
```

## What this package does not do

- It has no command-line program and does not run conda itself. You supply
  the executable that starts conda.
- Conda is the only package manager it detects and builds for. It has no
  detect or build steps for requirements files, Pipfiles or `pyproject.toml`
  projects, and no single entry point that chooses between package managers.
- It does not write layer `.toml` files or export images. It returns `Layer`
  objects for the caller to persist.