# nearbuild

Helpers for building NEAR smart contracts with `cargo`.

The package runs `cargo`, `rustc`, `rustup`, `git` and `docker` as
subprocesses. It covers these parts of a contract build:

- checking that a path names an existing `Cargo.toml` and making it absolute
  (`nearbuild.manifest_path.ManifestPath`), then collecting its cargo metadata
  and preparing the `target/near` output directory
  (`nearbuild.cargo_metadata.CrateMetadata`);
- running `cargo build` and picking the single `.wasm` or shared-library file it
  produced (`nearbuild.cargo_native.compile_artifact`, `select_artifact`,
  `merge_env`), and checking for the `wasm32-unknown-unknown` target
  (`wasm32_exists`);
- writing a contract ABI as pretty JSON, minified JSON or zstd-compressed data
  (`nearbuild.abi.write_to_file`), removing docs from it (`strip_docs`), and
  checking that the `near-sdk` dependency supports ABI generation
  (`find_near_sdk_package`, `check_near_sdk_features`);
- reading and validating `[package.metadata.near.reproducible_build]`
  (`nearbuild.reproducible.ReproducibleBuild`);
- finding the git repository and HEAD commit that hold a crate
  (`nearbuild.crate_in_repo.CrateInRepo`);
- docker checks: a `hello-world` sanity run and pulling the pinned image
  (`nearbuild.docker_checks.sanity_check`, `pull_image`);
- git checks: uncommitted files and whether HEAD has been pushed to the remote
  (`nearbuild.git_checks.check_then_handle`, `check_pushed_to_remote`);
- the volume mount, working directory and NEP-330 environment variables passed
  into a build container (`nearbuild.container_env.ContainerPaths`, `BuildInfo`,
  `EnvVars`);
- source snapshot identifiers such as
  `git+https://github.com/repo/contract?rev=<commit>`
  (`nearbuild.source_id.SourceId`);
- the cargo instructions a build script prints around a sub-contract build,
  with SHA-256 checksums in hex and base58
  (`nearbuild.build_script.BuildScriptOpts`).

Names of the environment variables involved are in `nearbuild.envkeys`.
Errors are raised as `nearbuild.errors.BuildError`.

## Installation

```
pip install nearbuild
```

## Examples

Validate a manifest and resolve where artifacts go:

```python
from nearbuild.manifest_path import ManifestPath
from nearbuild.cargo_metadata import CrateMetadata

manifest = ManifestPath.from_path("Cargo.toml")
metadata = CrateMetadata.collect(manifest, no_locked=False)
out_dir = metadata.resolve_output_dir(None)
print(metadata.formatted_package_name(), out_dir)
```

Compile a crate to wasm:

```python
from nearbuild.cargo_native import ArtifactType, compile_artifact

artifact = compile_artifact(
    manifest, ["--target", "wasm32-unknown-unknown", "--release"],
    artifact_type=ArtifactType.WASM,
)
print(artifact.path)
```

Build a source snapshot identifier:

```python
from nearbuild.source_id import SourceId, GitReference

source = SourceId.for_git(
    "https://github.com/repo/sample_no_workspace",
    GitReference("10415b1359c74b0d5774ce08b114f2bd1a85445d"),
)
print(source.as_url())
```

## What it does not do

- There is no command-line program and no single function that runs a whole
  build; the pieces above are meant to be called by your own driver.
- It does not start the build container itself; it computes the arguments and
  environment for `docker run`.
- It does not load a compiled contract to extract its ABI; `write_to_file`
  writes an ABI you already have.
- It has no helpers for temporarily changing the working directory or
  environment variables during a sub-build.

## Running the tests

```
pip install -e ".[test]"
pytest
```