import json
import subprocess
import sys
import textwrap
from pathlib import Path
from unittest.mock import patch

import pytest

from nearbuild.cargo_native import (
    ArtifactType,
    CompiledArtifact,
    compile_artifact,
    merge_env,
    select_artifact,
    wasm32_exists,
)
from nearbuild.errors import BuildError
from nearbuild.manifest_path import ManifestPath


@pytest.mark.parametrize(
    "platform, expected",
    [("linux", "so"), ("darwin", "dylib"), ("win32", "dll")],
)
def test_dylib_extension_per_platform(platform, expected):
    with patch("nearbuild.cargo_native.sys.platform", platform):
        assert ArtifactType.DYLIB.extension() == expected


def test_dylib_extension_unsupported_platform():
    with patch("nearbuild.cargo_native.sys.platform", "plan9"):
        with pytest.raises(BuildError, match="Unsupported platform"):
            ArtifactType.DYLIB.extension()


def test_wasm_extension():
    assert ArtifactType.WASM.extension() == "wasm"


def test_merge_env_appends_to_existing_rustflags(monkeypatch):
    monkeypatch.setenv("RUSTFLAGS", "-Cfoo")
    merged = merge_env([("A", "1")], hide_warnings=True)
    assert merged == {"A": "1", "RUSTFLAGS": "-Cfoo -Awarnings"}


def test_merge_env_rustflags_without_environment(monkeypatch):
    monkeypatch.delenv("RUSTFLAGS", raising=False)
    merged = merge_env([("RUSTFLAGS", "-Cx"), ("RUSTFLAGS", "-Cy")])
    assert merged["RUSTFLAGS"] == "-Cx -Cy"


def test_merge_env_last_value_wins_for_other_keys(monkeypatch):
    monkeypatch.delenv("RUSTFLAGS", raising=False)
    merged = merge_env({"K": "v"})
    assert merged == {"K": "v"}
    assert merge_env([("K", "a"), ("K", "b")])["K"] == "b"


def test_select_artifact_no_artifacts():
    with pytest.raises(BuildError, match="Cargo failed to produce any compilation artifacts"):
        select_artifact([], ArtifactType.WASM)


def test_select_artifact_picks_single_wasm_from_last_message():
    artifacts = [
        {"filenames": ["/t/other.wasm"], "fresh": True},
        {"filenames": ["/t/lib.rlib", "/t/contract.wasm"], "fresh": False},
    ]
    result = select_artifact(artifacts, ArtifactType.WASM)
    assert result.path == Path("/t/contract.wasm")
    assert result.fresh is True
    assert result.from_docker is False
    assert result.artifact_type is ArtifactType.WASM


def test_select_artifact_freshness_is_inverted():
    result = select_artifact([{"filenames": ["a.wasm"], "fresh": True}], ArtifactType.WASM)
    assert result.fresh is False


def test_select_artifact_no_matching_files():
    with pytest.raises(BuildError, match=r"Compilation resulted in no '\.wasm' target files"):
        select_artifact([{"filenames": ["a.rlib"], "fresh": False}], ArtifactType.WASM)


def test_select_artifact_more_than_one_file():
    with pytest.raises(BuildError, match="more than one"):
        select_artifact([{"filenames": ["a.wasm", "b.wasm"], "fresh": False}], ArtifactType.WASM)


_FAKE_CARGO = r'''
import json, os, sys
with open(os.environ["FAKE_CARGO_ARGS"], "w") as handle:
    json.dump({"argv": sys.argv[1:], "cwd": os.getcwd()}, handle)
sys.stderr.write("warming up\n")
print("not json at all")
print(json.dumps({"reason": "compiler-message", "message": {"rendered": "warning: careful\n"}}))
print(json.dumps({"reason": "compiler-artifact", "fresh": False, "filenames": [os.environ["FAKE_OUT"]]}))
sys.exit(int(os.environ.get("FAKE_EXIT", "0")))
'''


@pytest.fixture
def fake_project(tmp_path, monkeypatch):
    script = tmp_path / "fake-cargo"
    script.write_text(f"#!{sys.executable}\n" + textwrap.dedent(_FAKE_CARGO))
    script.chmod(0o755)
    monkeypatch.setenv("CARGO", str(script))
    project = tmp_path / "project"
    project.mkdir()
    (project / "Cargo.toml").write_text("[package]\n")
    return tmp_path, ManifestPath.from_path(project / "Cargo.toml")


def test_compile_artifact_runs_cargo(fake_project, capsys):
    tmp_path, manifest = fake_project
    args_file = tmp_path / "args.json"
    out = tmp_path / "out" / "contract.wasm"
    env = [("FAKE_CARGO_ARGS", str(args_file)), ("FAKE_OUT", str(out))]

    artifact = compile_artifact(
        manifest, ["--release"], env, False, "never", ArtifactType.WASM
    )

    assert artifact == CompiledArtifact(path=out, fresh=True)
    recorded = json.loads(args_file.read_text())
    assert recorded["argv"] == [
        "build",
        "--message-format=json-render-diagnostics",
        "--release",
        "--color",
        "never",
    ]
    assert Path(recorded["cwd"]) == manifest.directory()
    err = capsys.readouterr().err
    assert " │ warning: careful" in err
    assert " │ warming up" in err


def test_compile_artifact_failure(fake_project):
    tmp_path, manifest = fake_project
    env = [
        ("FAKE_CARGO_ARGS", str(tmp_path / "args.json")),
        ("FAKE_OUT", str(tmp_path / "c.wasm")),
        ("FAKE_EXIT", "3"),
    ]
    with pytest.raises(BuildError, match="failed with exit code"):
        compile_artifact(manifest, [], env, False, "auto", ArtifactType.WASM)


def test_compile_artifact_rejects_unknown_color(fake_project):
    _, manifest = fake_project
    with pytest.raises(ValueError):
        compile_artifact(manifest, [], [], False, "purple", ArtifactType.WASM)


def _runner(rustc_code, rustc_out, rustup_code):
    def run(cmd, *args, **kwargs):
        if cmd[0] == "rustc":
            return subprocess.CompletedProcess(cmd, rustc_code, rustc_out, b"")
        return subprocess.CompletedProcess(cmd, rustup_code, b"", None)

    return run


def test_wasm32_exists_when_libdir_present(tmp_path):
    runner = _runner(0, f"{tmp_path}\n".encode(), 1)
    with patch("nearbuild.cargo_native.subprocess.run", side_effect=runner):
        assert wasm32_exists() is True


def test_wasm32_exists_when_libdir_missing(tmp_path):
    runner = _runner(0, str(tmp_path / "missing").encode(), 0)
    with patch("nearbuild.cargo_native.subprocess.run", side_effect=runner):
        assert wasm32_exists() is False


def test_wasm32_exists_falls_back_to_rustup(monkeypatch):
    monkeypatch.delenv("RUSTUP", raising=False)
    with patch("nearbuild.cargo_native.subprocess.run", side_effect=_runner(1, b"", 0)) as run:
        assert wasm32_exists() is True
    assert run.call_args_list[-1].args[0] == ["rustup", "target", "list", "--installed"]


def test_wasm32_exists_rustup_failure():
    with patch("nearbuild.cargo_native.subprocess.run", side_effect=_runner(1, b"", 1)):
        assert wasm32_exists() is False