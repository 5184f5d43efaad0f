"""Cargo.toml scanning for local package locations.

Maps each package name reachable from a manifest (the package itself,
workspace members and transitive `path` dependencies) to its directory
relative to the scanned root. On the project root this gives path hints for
local packages; on a git checkout it gives each package's subdirectory.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import toml

from flatcrate.errors import ValidationError

DEPENDENCY_TABLES = ("dependencies", "dev-dependencies", "build-dependencies")


def read_manifest(path: str | Path) -> dict[str, Any]:
    manifest_path = Path(path)
    try:
        return toml.loads(manifest_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValidationError(
            "Cargo manifest does not exist.",
            context={"path": str(manifest_path)},
        ) from exc
    except toml.TomlDecodeError as exc:
        raise ValidationError(
            "Cargo manifest is not valid TOML.",
            hint=str(exc),
            context={"path": str(manifest_path)},
        ) from exc


def scan_workspace(root_dir: str | Path) -> dict[str, Path]:
    root = Path(root_dir).resolve()
    manifest = read_manifest(root / "Cargo.toml")
    if "package" not in manifest and "workspace" not in manifest:
        raise ValidationError(
            "Cargo manifest declares neither a package nor a workspace.",
            context={"path": str(root / "Cargo.toml")},
        )

    packages: dict[str, Path] = {}
    workspace = manifest.get("workspace")
    if isinstance(workspace, dict):
        _collect_path_dependencies(workspace, root, root=root, packages=packages)

    if "package" in manifest:
        packages[_package_name(manifest, root)] = Path(".")
        _collect_path_dependencies(manifest, root, root=root, packages=packages)

    if isinstance(workspace, dict):
        for member_dir in _workspace_members(workspace, root):
            member = read_manifest(member_dir / "Cargo.toml")
            packages[_package_name(member, member_dir)] = _relative(member_dir, root)
            _collect_path_dependencies(member, member_dir, root=root, packages=packages)

    return dict(sorted(packages.items()))


def _workspace_members(workspace: dict[str, Any], root: Path) -> list[Path]:
    members = workspace.get("members", [])
    excludes = workspace.get("exclude", [])
    if not isinstance(members, list) or not isinstance(excludes, list):
        raise ValidationError("Workspace `members` and `exclude` must be arrays.")
    excluded = {Path(os.path.normpath(root / item)) for item in excludes if isinstance(item, str)}

    found: list[Path] = []
    for pattern in members:
        if not isinstance(pattern, str):
            continue
        for candidate in sorted(root.glob(pattern)):
            candidate = Path(os.path.normpath(candidate))
            if candidate == root or candidate in excluded or candidate in found:
                continue
            if (candidate / "Cargo.toml").is_file():
                found.append(candidate)
    return found


def _collect_path_dependencies(
    entry: dict[str, Any],
    entry_dir: Path,
    *,
    root: Path,
    packages: dict[str, Path],
) -> None:
    for table_name in DEPENDENCY_TABLES:
        table = entry.get(table_name)
        if not isinstance(table, dict):
            continue
        for dep_name, dep in sorted(table.items()):
            if not isinstance(dep, dict) or not isinstance(dep.get("path"), str):
                continue
            name = dep.get("package", dep_name)
            if name in packages:
                continue
            dep_dir = Path(os.path.normpath(entry_dir / dep["path"]))
            dep_manifest = read_manifest(dep_dir / "Cargo.toml")
            declared = _package_name(dep_manifest, dep_dir)
            if declared != name:
                raise ValidationError(
                    "Path dependency points at a differently named package.",
                    context={"package": name, "declared": declared, "path": str(dep_dir)},
                )
            packages[name] = _relative(dep_dir, root)
            _collect_path_dependencies(dep_manifest, dep_dir, root=root, packages=packages)

    targets = entry.get("target")
    if isinstance(targets, dict):
        for _, target in sorted(targets.items()):
            if isinstance(target, dict):
                _collect_path_dependencies(target, entry_dir, root=root, packages=packages)


def _package_name(manifest: dict[str, Any], manifest_dir: Path) -> str:
    package = manifest.get("package")
    name = package.get("name") if isinstance(package, dict) else None
    if not isinstance(name, str) or not name:
        raise ValidationError(
            "Cargo manifest has no package name.",
            context={"path": str(manifest_dir / "Cargo.toml")},
        )
    return name


def _relative(path: Path, root: Path) -> Path:
    return Path(os.path.relpath(path, root))
