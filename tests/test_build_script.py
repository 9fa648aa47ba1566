import pytest

from nearbuild.build_script import (
    BuildScriptOpts,
    artifact_checksum,
    base58_encode,
    cargo_separator,
)
from nearbuild.errors import BuildError

NEW = (1, 77, 0)
OLD = (1, 76, 0)


def test_cargo_separator_by_version():
    assert cargo_separator(NEW) == "::"
    assert cargo_separator((1, 80, 2)) == "::"
    assert cargo_separator(OLD) == ":"
    assert cargo_separator("1.77.0") == "::"


def test_base58_leading_zeros_and_empty():
    assert base58_encode(b"") == ""
    assert base58_encode(b"\0\0") == "11"
    assert base58_encode(b"\0\x01") == "12"


def test_base58_known_value():
    assert base58_encode(b"hello world") == "StV1DL6CwTryKyV"


def test_artifact_checksum_of_empty_file(tmp_path):
    path = tmp_path / "empty.wasm"
    path.write_bytes(b"")
    digest = artifact_checksum(path)
    assert len(digest) == 32
    assert digest.hex().startswith("e3b0c442")


def test_should_skip_matches_env(monkeypatch, capsys):
    monkeypatch.setenv("PROFILE", "debug")
    opts = BuildScriptOpts(build_skipped_when_env_is=[("PROFILE", "debug")])
    assert opts.should_skip(NEW) is True
    out = capsys.readouterr().out
    assert (
        "cargo::warning=`PROFILE` env set to `debug`, build was configured to skip on this value"
        in out
    )


def test_should_skip_no_match(monkeypatch):
    monkeypatch.setenv("PROFILE", "release")
    monkeypatch.delenv("CARGO_NEAR_ABI_GENERATION", raising=False)
    opts = BuildScriptOpts(
        build_skipped_when_env_is=[("PROFILE", "debug"), ("CARGO_NEAR_ABI_GENERATION", "true")]
    )
    assert opts.should_skip(OLD) is False


def test_create_empty_stub(tmp_path):
    stub = tmp_path / "stub.bin"
    stub.write_bytes(b"previous content")
    artifact = BuildScriptOpts(stub_path=str(stub)).create_empty_stub()
    assert artifact.path == stub.resolve()
    assert artifact.path.read_bytes() == b""
    assert artifact.fresh is True
    assert artifact.from_docker is False


def test_create_empty_stub_requires_path():
    with pytest.raises(BuildError, match="stub_path` wasn't configured"):
        BuildScriptOpts().create_empty_stub()


def test_post_build_exports_result(tmp_path, capsys):
    artifact = tmp_path / "contract.wasm"
    artifact.write_bytes(b"\0asm")
    opts = BuildScriptOpts(
        result_env_key="BUILD_RS_SUB_BUILD_ARTIFACT_1",
        rerun_if_changed_list=["../another-contract", "../Cargo.toml"],
    )
    opts.post_build(False, artifact, "../another-contract", NEW)
    lines = capsys.readouterr().out.splitlines()
    checksum = artifact_checksum(artifact)
    assert f"cargo::rustc-env=BUILD_RS_SUB_BUILD_ARTIFACT_1={artifact}" in lines
    assert f"cargo::warning=Sub-build artifact SHA-256 checksum hex: {checksum.hex()}" in lines
    assert (
        f"cargo::warning=Sub-build artifact SHA-256 checksum bs58: {base58_encode(checksum)}"
        in lines
    )
    assert lines[-2:] == [
        "cargo::rerun-if-changed=../another-contract",
        "cargo::rerun-if-changed=../Cargo.toml",
    ]


def test_post_build_skipped_uses_old_separator(tmp_path, capsys):
    stub = tmp_path / "stub.bin"
    stub.write_bytes(b"")
    opts = BuildScriptOpts(result_env_key="RESULT")
    opts.post_build(True, stub, "work", OLD)
    out = capsys.readouterr().out
    assert f"cargo:warning=Build empty artifact stub-file written to: `{stub}`" in out
    assert f"cargo:rustc-env=RESULT={stub}" in out
    assert "checksum" not in out


def test_post_build_reports_version_mismatch(tmp_path, capsys):
    artifact = tmp_path / "a.wasm"
    artifact.write_bytes(b"")
    BuildScriptOpts().post_build(False, artifact, "work", NEW, version_mismatch="0.1 vs 0.2")
    out = capsys.readouterr().out
    assert "cargo::warning=INFO: `cargo-near` version was coerced during build: 0.1 vs 0.2." in out
    assert "rustc-env" not in out