"""Cargo vendoring companions for an offline source set."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import toml

from flatcrate.config import Options
from flatcrate.errors import ValidationError
from flatcrate.lockfile.model import GitOrigin, LockGraph, RegistryOrigin
from flatcrate.sources import Archive, FetchableSource
from flatcrate.workspace import DEPENDENCY_TABLES, read_manifest, scan_workspace

VENDORED_SOURCES = "vendored-sources"
CRATES_IO_SOURCE = "crates-io"


def checksum_stub(entry: FetchableSource) -> str:
    """Contents of the `.cargo-checksum.json` cargo expects in a vendored crate."""
    package = entry.sha256 if isinstance(entry, Archive) else None
    return json.dumps({"files": {}, "package": package}, sort_keys=True)


def cargo_config(graph: LockGraph, options: Options | None = None) -> str:
    """Render the `[source]` tables that redirect every remote source to the vendor dir."""
    options = options or Options()
    sources: dict[str, dict[str, str]] = {}
    for node in graph.nodes:
        if node.name in options.exclude:
            continue
        origin = node.origin
        if isinstance(origin, RegistryOrigin):
            if options.is_crates_io(origin.index_url):
                sources[CRATES_IO_SOURCE] = {"replace-with": VENDORED_SOURCES}
                continue
            prefix = "sparse+" if origin.sparse else ""
            sources[origin.index_url] = {
                "registry": f"{prefix}{origin.index_url}",
                "replace-with": VENDORED_SOURCES,
            }
        elif isinstance(origin, GitOrigin):
            name = origin.url
            table = {"git": origin.url, "replace-with": VENDORED_SOURCES}
            if origin.reference is not None:
                kind, value = origin.reference
                name = f"{origin.url}?{kind}={value}"
                table[kind] = value
            sources[name] = table
    sources[VENDORED_SOURCES] = {"directory": options.vendor_dir}
    return toml.dumps({"source": dict(sorted(sources.items()))})


def normalized_manifest(checkout_dir: str | Path, package: str) -> str:
    """Render a git checkout member's `Cargo.toml` with workspace keys inherited.

    A crate vendored out of its git workspace can no longer see the
    `[workspace]` tables, so every `key.workspace = true` is replaced by the
    workspace value. Dependencies keep their local `features`, `optional`
    and other keys on top of the inherited entry.
    """
    root = Path(checkout_dir).resolve()
    locations = scan_workspace(root)
    if package not in locations:
        raise ValidationError(
            "Package is not part of the git checkout.",
            context={"package": package, "path": str(root)},
        )
    member_dir = Path(os.path.normpath(root / locations[package]))
    manifest = read_manifest(member_dir / "Cargo.toml")
    workspace = read_manifest(root / "Cargo.toml").get("workspace")
    if not isinstance(workspace, dict):
        return toml.dumps(manifest)
    inherit = _Inheritance(workspace, root=root, member_dir=member_dir, package=package)
    return toml.dumps(inherit.manifest(manifest))


class _Inheritance:
    def __init__(
        self,
        workspace: dict[str, Any],
        *,
        root: Path,
        member_dir: Path,
        package: str,
    ) -> None:
        self.workspace = workspace
        self.root = root
        self.member_dir = member_dir
        self.package = package

    def manifest(self, manifest: dict[str, Any]) -> dict[str, Any]:
        normalized: dict[str, Any] = {}
        for section_key, section in manifest.items():
            if not isinstance(section, dict):
                normalized[section_key] = section
            elif section.get("workspace") is True:
                # Whole-table inheritance, e.g. `lints.workspace = true`.
                normalized[section_key] = self._inherited(section_key, section_key)
            elif section_key == "target":
                normalized[section_key] = {
                    cfg: self.manifest(table) if isinstance(table, dict) else table
                    for cfg, table in section.items()
                }
            elif section_key in DEPENDENCY_TABLES:
                normalized[section_key] = self._section(section, "dependencies", dependencies=True)
            else:
                normalized[section_key] = self._section(section, section_key, dependencies=False)
        return normalized

    def _section(
        self,
        section: dict[str, Any],
        source: str,
        *,
        dependencies: bool,
    ) -> dict[str, Any]:
        resolved: dict[str, Any] = {}
        for key, value in section.items():
            if not isinstance(value, dict) or value.get("workspace") is not True:
                resolved[key] = value
                continue
            inherited = self._inherited(source, key)
            resolved[key] = self._dependency(inherited, value) if dependencies else inherited
        return resolved

    def _inherited(self, source: str, key: str) -> Any:
        table = self.workspace.get(source)
        if source != key:
            table = table.get(key) if isinstance(table, dict) else None
        if table is None:
            raise ValidationError(
                "Manifest inherits a key the workspace does not define.",
                context={"package": self.package, "key": f"{source}.{key}"},
            )
        return table

    def _dependency(self, inherited: Any, local: dict[str, Any]) -> dict[str, Any]:
        merged = {"version": inherited} if isinstance(inherited, str) else dict(inherited)
        if isinstance(merged.get("path"), str):
            target = os.path.normpath(self.root / merged["path"])
            merged["path"] = Path(os.path.relpath(target, self.member_dir)).as_posix()
        for key, value in local.items():
            if key == "workspace":
                continue
            if key == "features":
                features = list(merged.get("features", []))
                merged["features"] = features + [item for item in value if item not in features]
            else:
                merged[key] = value
        return merged
