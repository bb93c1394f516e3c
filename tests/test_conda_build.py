import io
import os
from pathlib import Path

import pytest

from pypackagers.common import (
    CYCLONEDX_FORMAT,
    SBOM,
    SPDX_FORMAT,
    Clock,
    CommonBuildParameters,
)
from pypackagers.conda.build import CondaBuildParameters, build
from pypackagers.conda.constants import CONDA_ENV_PLAN_ENTRY
from pypackagers.logger import Emitter
from pypackagers.packit import (
    BuildContext,
    BuildpackInfo,
    BuildpackPlan,
    BuildpackPlanEntry,
    Layers,
)


class FakeRunner:
    def __init__(self):
        self.should_run_returns = (True, "some-sha")
        self.should_run_error = None
        self.should_run_receives = None
        self.execute_error = None
        self.execute_stub = None
        self.execute_calls = 0
        self.execute_receives = None

    def should_run(self, working_dir, metadata):
        self.should_run_receives = (working_dir, dict(metadata))
        if self.should_run_error is not None:
            raise self.should_run_error
        return self.should_run_returns

    def execute(self, conda_layer_path, conda_cache_path, working_dir):
        self.execute_calls += 1
        self.execute_receives = (conda_layer_path, conda_cache_path, working_dir)
        if self.execute_stub is not None:
            self.execute_stub(conda_layer_path, conda_cache_path, working_dir)
        if self.execute_error is not None:
            raise self.execute_error


class FakeSBOMGenerator:
    def __init__(self):
        self.sbom = SBOM()
        self.error = None
        self.receives = None

    def generate(self, directory):
        self.receives = directory
        if self.error is not None:
            raise self.error
        return self.sbom


@pytest.fixture
def env(tmp_path):
    layers_dir = tmp_path / "layers"
    working_dir = tmp_path / "working-dir"
    layers_dir.mkdir()
    working_dir.mkdir()
    runner = FakeRunner()
    generator = FakeSBOMGenerator()
    stream = io.StringIO()
    common = CommonBuildParameters(
        logger=Emitter(stream), sbom_generator=generator, clock=Clock()
    )
    context = BuildContext(
        buildpack_info=BuildpackInfo(
            name="Some Buildpack",
            version="some-version",
            sbom_formats=[CYCLONEDX_FORMAT, SPDX_FORMAT],
        ),
        working_dir=str(working_dir),
        layers=Layers(path=str(layers_dir)),
        plan=BuildpackPlan(entries=[BuildpackPlanEntry(name=CONDA_ENV_PLAN_ENTRY)]),
        cnb_path=str(tmp_path / "cnb"),
        platform_path="some-platform-path",
        stack="some-stack",
    )
    return {
        "layers_dir": layers_dir,
        "working_dir": working_dir,
        "runner": runner,
        "generator": generator,
        "stream": stream,
        "common": common,
        "context": context,
    }


def run_build(env):
    return build(CondaBuildParameters(runner=env["runner"]), env["common"], env["context"])


def test_returns_a_result_that_builds_correctly(env):
    result = run_build(env)
    assert len(result.layers) == 1

    layer = result.layers[0]
    assert layer.name == "conda-env"
    assert layer.path == env["layers_dir"] / "conda-env"
    assert (layer.build, layer.launch, layer.cache) == (False, False, False)
    assert layer.build_env == {}
    assert layer.launch_env == {}
    assert layer.process_launch_env == {}
    assert layer.shared_env == {}
    assert layer.metadata == {"lockfile-sha": "some-sha"}

    assert len(layer.sbom) == 2
    assert sorted(fmt.extension for fmt in layer.sbom) == ["cdx.json", "spdx.json"]

    runner = env["runner"]
    assert runner.execute_receives == (
        os.path.join(str(env["layers_dir"]), "conda-env"),
        os.path.join(str(env["layers_dir"]), "conda-env-cache"),
        str(env["working_dir"]),
    )
    assert env["generator"].receives == str(env["working_dir"])


def test_cache_layer_is_exported_when_non_empty(env):
    def stub(_layer, cache, _work):
        Path(cache).mkdir()
        (Path(cache) / "some-file").write_bytes(b"")

    env["runner"].execute_stub = stub
    result = run_build(env)
    assert len(result.layers) == 2
    assert result.layers[0].name == "conda-env"

    cache_layer = result.layers[1]
    assert cache_layer.name == "conda-env-cache"
    assert cache_layer.path == env["layers_dir"] / "conda-env-cache"
    assert (cache_layer.build, cache_layer.launch, cache_layer.cache) == (
        False,
        False,
        True,
    )


def test_empty_cache_dir_is_not_exported(env):
    env["runner"].execute_stub = lambda _l, cache, _w: Path(cache).mkdir()
    result = run_build(env)
    assert [layer.name for layer in result.layers] == ["conda-env"]


def test_launch_requirement_sets_launch_flag(env):
    env["context"].plan.entries[0].metadata = {"launch": True}
    result = run_build(env)
    assert len(result.layers) == 1
    layer = result.layers[0]
    assert (layer.build, layer.launch, layer.cache) == (False, True, False)


def test_build_requirement_sets_build_and_cache(env):
    env["context"].plan.entries[0].metadata = {"build": True}
    result = run_build(env)
    assert len(result.layers) == 1
    layer = result.layers[0]
    assert (layer.build, layer.launch, layer.cache) == (True, False, True)


def test_reuses_cached_layer(env):
    env["runner"].should_run_returns = (False, "cached-sha")
    result = run_build(env)
    assert len(result.layers) == 1
    assert result.layers[0].name == "conda-env"
    assert env["runner"].execute_calls == 0
    expected = f"  Reusing cached layer {env['layers_dir'] / 'conda-env'}\n"
    assert expected in env["stream"].getvalue()


def test_previous_metadata_is_handed_to_runner(env):
    (env["layers_dir"] / "conda-env.toml").write_text(
        '[metadata]\nlockfile-sha = "cached-sha"\n'
    )
    env["runner"].should_run_returns = (False, "cached-sha")
    result = run_build(env)
    assert env["runner"].should_run_receives == (
        str(env["working_dir"]),
        {"lockfile-sha": "cached-sha"},
    )
    assert result.layers[0].metadata == {"lockfile-sha": "cached-sha"}


def test_logs_title_and_durations(env):
    ticks = iter([0.0, 1.5, 2.0, 2.012])
    env["common"].clock = Clock(now=lambda: next(ticks))
    run_build(env)
    output = env["stream"].getvalue()
    assert output.startswith("Some Buildpack some-version\n")
    assert "  Executing build process\n" in output
    assert "      Completed in 1.5s\n" in output
    assert "      Completed in 12ms\n" in output
    assert f"  Generating SBOM for {env['layers_dir'] / 'conda-env'}\n" in output


def test_unreadable_layer_metadata_fails(env):
    (env["layers_dir"] / "conda-env.toml").write_text("not = [valid toml")
    with pytest.raises(ValueError):
        run_build(env)
    assert env["runner"].should_run_receives is None


def test_unreadable_cache_layer_metadata_fails(env):
    (env["layers_dir"] / "conda-env-cache.toml").write_text("not = [valid toml")
    with pytest.raises(ValueError):
        run_build(env)
    assert env["runner"].should_run_receives is None


def test_should_run_failure_propagates(env):
    env["runner"].should_run_error = RuntimeError("some-shouldrun-error")
    with pytest.raises(RuntimeError, match="^some-shouldrun-error$"):
        run_build(env)


def test_layer_that_cannot_be_reset_fails(env, tmp_path):
    not_a_dir = tmp_path / "layers-file"
    not_a_dir.write_text("")
    env["context"].layers = Layers(path=str(not_a_dir))
    with pytest.raises(OSError, match="error could not create directory"):
        run_build(env)
    assert env["runner"].execute_calls == 0


def test_execute_failure_propagates(env):
    env["runner"].execute_error = RuntimeError("some execution error")
    with pytest.raises(RuntimeError, match="some execution error"):
        run_build(env)


def test_unsupported_sbom_format_fails(env):
    env["context"].buildpack_info.sbom_formats = ["random-format"]
    with pytest.raises(ValueError) as info:
        run_build(env)
    assert str(info.value) == "unsupported SBOM format: 'random-format'"


def test_sbom_generation_failure_propagates(env):
    env["generator"].error = RuntimeError("failed to generate SBOM")
    with pytest.raises(RuntimeError, match="failed to generate SBOM"):
        run_build(env)