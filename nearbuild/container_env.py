"""Paths and environment passed to the docker container of a reproducible build."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import urljoin, urlsplit

from nearbuild.crate_in_repo import CrateInRepo
from nearbuild.envkeys import (
    NEP330_BUILD_ENVIRONMENT,
    NEP330_CONTRACT_PATH,
    NEP330_LINK,
    NEP330_SOURCE_CODE_SNAPSHOT,
)
from nearbuild.errors import BuildError
from nearbuild.source_id import GitReference, SourceId

NEP330_REPO_MOUNT = "/home/near/code"
RUST_LOG_EXPORT = "RUST_LOG=cargo_near=info"


def _unix_contract_path(crate: CrateInRepo) -> str:
    path = crate.unix_relative_path()
    return "" if path == PurePosixPath(".") else str(path)


def _require_repository(build_meta) -> str:
    if build_meta.repository is None:
        raise BuildError("`[package.repository]`: should not be empty")
    return build_meta.repository


@dataclass(frozen=True)
class ContainerPaths:
    """The volume mount and the crate's working directory inside the container."""

    host_volume_arg: str
    crate_path: str

    @classmethod
    def compute(cls, tmp_repo_dir, crate: CrateInRepo) -> "ContainerPaths":
        """Mount ``tmp_repo_dir`` at the fixed repository mount point."""
        host_volume_arg = f"{tmp_repo_dir}:{NEP330_REPO_MOUNT}"
        crate_path = str(PurePosixPath(NEP330_REPO_MOUNT) / crate.unix_relative_path())
        return cls(host_volume_arg=host_volume_arg, crate_path=crate_path)


@dataclass(frozen=True)
class BuildInfo:
    """NEP-330 build details exported into the container."""

    build_environment: str
    contract_path: str
    source_code_snapshot: SourceId

    @classmethod
    def create(cls, build_meta, crate: CrateInRepo) -> "BuildInfo":
        repository = _require_repository(build_meta)
        try:
            snapshot = SourceId.for_git(repository, GitReference(crate.head))
        except BuildError as err:
            raise BuildError(f"compute SourceId {err}") from err
        return cls(
            build_environment=build_meta.concat_image(),
            contract_path=_unix_contract_path(crate),
            source_code_snapshot=snapshot,
        )

    def docker_args(self) -> list[str]:
        return [
            "--env",
            f"{NEP330_BUILD_ENVIRONMENT}={self.build_environment}",
            "--env",
            f"{NEP330_SOURCE_CODE_SNAPSHOT}={self.source_code_snapshot.as_url()}",
            "--env",
            f"{NEP330_CONTRACT_PATH}={self.contract_path}",
        ]


@dataclass(frozen=True)
class EnvVars:
    """All environment variables passed to the container."""

    build_info: BuildInfo
    rust_log: str
    repo_link: str
    revision: str

    @classmethod
    def create(cls, build_meta, crate: CrateInRepo) -> "EnvVars":
        return cls(
            build_info=BuildInfo.create(build_meta, crate),
            rust_log=RUST_LOG_EXPORT,
            repo_link=_require_repository(build_meta),
            revision=crate.head,
        )

    def docker_args(self) -> list[str]:
        args = self.build_info.docker_args()
        hint = self.repo_link_hint()
        if hint is not None:
            args += ["--env", f"{NEP330_LINK}={hint}"]
        args += ["--env", self.rust_log]
        return args

    def repo_link_hint(self) -> str | None:
        """A browsable link to the source tree at the revision, for GitHub remotes only."""
        try:
            parts = urlsplit(self.repo_link)
        except ValueError:
            return None
        if parts.hostname != "github.com":
            return None
        path = parts.path
        while path.endswith(".git"):
            path = path[: -len(".git")]
        return urljoin(self.repo_link, f"{path}/tree/{self.revision}")