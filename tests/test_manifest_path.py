import pytest

from nearbuild.errors import BuildError
from nearbuild.manifest_path import MANIFEST_FILE_NAME, ManifestPath


@pytest.fixture
def manifest(tmp_path):
    path = tmp_path / MANIFEST_FILE_NAME
    path.write_text('[package]\nname = "sample"\n')
    return path


def test_from_path_resolves_absolute(manifest):
    result = ManifestPath.from_path(manifest)
    assert result.path == manifest.resolve()
    assert result.path.is_absolute()


def test_directory_is_parent(manifest):
    result = ManifestPath.from_path(manifest)
    assert result.directory() == manifest.parent.resolve()


def test_relative_path_is_resolved(manifest, monkeypatch):
    monkeypatch.chdir(manifest.parent)
    result = ManifestPath.from_path(MANIFEST_FILE_NAME)
    assert result.path == manifest.resolve()


def test_wrong_file_name_rejected(tmp_path):
    other = tmp_path / "package.json"
    other.write_text("{}")
    with pytest.raises(BuildError, match="must be a path to a Cargo.toml file"):
        ManifestPath.from_path(other)


def test_empty_path_rejected():
    with pytest.raises(BuildError, match="must be a path to a Cargo.toml file"):
        ManifestPath.from_path("")


def test_missing_manifest_reports_workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(BuildError, match="does not exist") as info:
        ManifestPath.from_path("missing/Cargo.toml")
    assert "missing/Cargo.toml" in str(info.value) or "missing" in str(info.value)