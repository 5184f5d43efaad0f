"""Cargo.lock parser."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import toml

from flatcrate.errors import MalformedLockError, MissingChecksumError, UnsupportedLockVersionError
from flatcrate.lockfile.model import LockGraph, PackageId, PackageNode, RegistryOrigin
from flatcrate.lockfile.origin import parse_origin

SUPPORTED_LOCK_VERSIONS = (1, 2, 3, 4)

NO_CHECKSUM = "<none>"

DEPENDENCY_PATTERN = re.compile(
    r"^(?P<name>[^\s()]+)(?: (?P<version>[^\s()]+))?(?: \((?P<source>[^)]+)\))?$"
)


@dataclass(slots=True)
class _Draft:
    id: PackageId
    checksum: str | None
    dependencies: list[str] = field(default_factory=list)


def parse_lockfile(raw: str) -> LockGraph:
    try:
        payload = toml.loads(raw)
    except toml.TomlDecodeError as exc:
        raise MalformedLockError("Invalid Cargo.lock TOML.", hint=str(exc)) from exc

    version = _lock_version(payload)
    packages_raw = payload.get("package", [])
    if not isinstance(packages_raw, list):
        raise MalformedLockError("Invalid lockfile `package` value.")
    metadata_checksums = _metadata_checksums(payload) if version == 1 else {}

    drafts: dict[PackageId, _Draft] = {}
    for item in packages_raw:
        draft = _parse_package(item, metadata_checksums)
        existing = drafts.get(draft.id)
        if existing is None:
            drafts[draft.id] = draft
            continue
        _merge_duplicate(existing, draft)

    ordered = sorted(drafts.values(), key=lambda item: item.id.sort_key())
    index = {draft.id: position for position, draft in enumerate(ordered)}

    nodes: list[PackageNode] = []
    for draft in ordered:
        origin = parse_origin(draft.id.source, checksum=draft.checksum, package=str(draft.id))
        if isinstance(origin, RegistryOrigin) and not draft.checksum:
            raise MissingChecksumError(
                "Registry package has no checksum in the lockfile.",
                hint="Regenerate Cargo.lock with a cargo that records checksums.",
                context={"package": str(draft.id), "source": draft.id.source or ""},
            )
        dependencies = sorted(
            {_resolve_dependency(ref, ordered, owner=draft.id) for ref in draft.dependencies}
        )
        nodes.append(
            PackageNode(
                id=draft.id,
                origin=origin,
                checksum=draft.checksum,
                dependencies=tuple(dependencies),
            )
        )
    return LockGraph(version=version, nodes=tuple(nodes), index=index)


def read_lockfile(path: str | Path) -> LockGraph:
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise MalformedLockError(
            "Lockfile does not exist.",
            hint="Run `cargo generate-lockfile` in the project first.",
            context={"path": str(lock_path)},
        ) from exc
    return parse_lockfile(raw)


def _lock_version(payload: dict[str, Any]) -> int:
    if "version" not in payload:
        metadata = payload.get("metadata")
        if isinstance(metadata, dict) and any(key.startswith("checksum ") for key in metadata):
            return 1
        return 2
    value = payload["version"]
    if not isinstance(value, int) or isinstance(value, bool):
        raise MalformedLockError("Invalid lockfile `version` value.")
    if value not in SUPPORTED_LOCK_VERSIONS:
        raise UnsupportedLockVersionError(
            "Unsupported Cargo.lock version.",
            hint=f"Supported versions: {', '.join(map(str, SUPPORTED_LOCK_VERSIONS))}.",
            context={"version": str(value)},
        )
    return value


def _metadata_checksums(payload: dict[str, Any]) -> dict[PackageId, str]:
    metadata = payload.get("metadata", {})
    if not isinstance(metadata, dict):
        raise MalformedLockError("Invalid lockfile `metadata` value.")
    checksums: dict[PackageId, str] = {}
    for key, value in metadata.items():
        if not key.startswith("checksum "):
            continue
        match = DEPENDENCY_PATTERN.fullmatch(key[len("checksum ") :])
        if match is None or match["version"] is None or not isinstance(value, str):
            raise MalformedLockError(
                "Invalid checksum entry in lockfile metadata.",
                context={"key": key},
            )
        if value == NO_CHECKSUM:
            continue
        checksums[PackageId(match["name"], match["version"], match["source"])] = value
    return checksums


def _parse_package(item: Any, metadata_checksums: dict[PackageId, str]) -> _Draft:
    if not isinstance(item, dict):
        raise MalformedLockError("Invalid package entry in lockfile.")
    name = _required_str(item, "name")
    version = _required_str(item, "version", package=name)
    package_id = PackageId(name=name, version=version, source=_optional_str(item, "source", name))

    checksum = _optional_str(item, "checksum", name)
    if checksum is None:
        checksum = metadata_checksums.get(package_id)

    dependencies = item.get("dependencies", [])
    if not isinstance(dependencies, list) or not all(isinstance(dep, str) for dep in dependencies):
        raise MalformedLockError(
            "Invalid lockfile `dependencies` value.",
            context={"package": str(package_id)},
        )
    return _Draft(id=package_id, checksum=checksum, dependencies=list(dependencies))


def _merge_duplicate(existing: _Draft, duplicate: _Draft) -> None:
    if duplicate.checksum and existing.checksum and duplicate.checksum != existing.checksum:
        raise MalformedLockError(
            "Duplicate package entries disagree on checksum.",
            context={
                "package": str(existing.id),
                "first": existing.checksum,
                "second": duplicate.checksum,
            },
        )
    existing.checksum = existing.checksum or duplicate.checksum
    for dep in duplicate.dependencies:
        if dep not in existing.dependencies:
            existing.dependencies.append(dep)


def _resolve_dependency(reference: str, drafts: list[_Draft], *, owner: PackageId) -> int:
    match = DEPENDENCY_PATTERN.fullmatch(reference)
    if match is None:
        raise MalformedLockError(
            "Invalid dependency reference in lockfile.",
            context={"package": str(owner), "dependency": reference},
        )
    candidates = [
        position
        for position, draft in enumerate(drafts)
        if draft.id.name == match["name"]
        and (match["version"] is None or draft.id.version == match["version"])
        and (match["source"] is None or _same_source(match["source"], draft.id.source))
    ]
    if len(candidates) == 1:
        return candidates[0]
    reason = "does not match any package" if not candidates else "matches several packages"
    raise MalformedLockError(
        f"Dependency reference {reason}.",
        hint="Regenerate Cargo.lock; references must name exactly one locked package.",
        context={"package": str(owner), "dependency": reference},
    )


def _required_str(payload: dict[str, Any], key: str, package: str | None = None) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise MalformedLockError(
            f"Invalid lockfile `{key}` value.",
            context={"package": package or ""},
        )
    return value


def _optional_str(payload: dict[str, Any], key: str, package: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        raise MalformedLockError(
            f"Invalid lockfile `{key}` value.",
            context={"package": package},
        )
    return value


def _same_source(wanted: str, actual: str | None) -> bool:
    # Dependency references may omit the locked git commit fragment.
    if actual is None:
        return False
    if wanted == actual:
        return True
    return "#" not in wanted and actual.split("#", 1)[0] == wanted
