"""Origin classification into fetchable source entries."""

from __future__ import annotations

import hashlib
import re
import warnings
from collections import defaultdict
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path

from flatcrate.config import Options
from flatcrate.errors import UnclassifiableOriginError
from flatcrate.lockfile.model import GitOrigin, LockGraph, PackageNode, PathOrigin, RegistryOrigin
from flatcrate.observability import StructuredLogger
from flatcrate.sources import Archive, FetchableSource, GitSource

COMMIT_PATTERN = re.compile(r"^[0-9a-f]{7,64}$")

DL_MARKERS = ("{crate}", "{version}", "{prefix}", "{lowerprefix}", "{sha256-checksum}")
DL_DEFAULT_SUFFIX = "/{crate}/{version}/download"
DEST_SUFFIX_LEN = 8


class OutsideWorkspaceWarning(UserWarning):
    """Warning raised for a local package that lives outside the workspace root."""


@dataclass(frozen=True, slots=True)
class SourceWarning:
    package: str
    message: str
    path: str | None = None


@dataclass(frozen=True, slots=True)
class ClassifiedSources:
    entries: tuple[FetchableSource, ...] = ()
    warnings: tuple[SourceWarning, ...] = ()
    excluded: tuple[str, ...] = ()


def crate_prefix(name: str) -> str:
    """Index directory prefix cargo uses for `{prefix}` substitution."""
    if len(name) <= 2:
        return str(len(name))
    if len(name) == 3:
        return f"3/{name[0]}"
    return f"{name[0:2]}/{name[2:4]}"


def download_url(template: str, *, name: str, version: str, checksum: str) -> str:
    if not any(marker in template for marker in DL_MARKERS):
        template = template.rstrip("/") + DL_DEFAULT_SUFFIX
    prefix = crate_prefix(name)
    return (
        template.replace("{crate}", name)
        .replace("{version}", version)
        .replace("{lowerprefix}", prefix.lower())
        .replace("{prefix}", prefix)
        .replace("{sha256-checksum}", checksum)
    )


def git_dest(origin: GitOrigin, *, options: Options) -> str:
    repo = origin.url.rstrip("/").rsplit("/", 1)[-1] or "repo"
    dest = f"{options.git_dir}/{repo}-{(origin.commit or '')[: options.commit_len]}"
    if origin.subdirectory:
        dest += "-" + origin.subdirectory.strip("/").replace("/", "-")
    return dest


def classify(node: PackageNode, *, options: Options | None = None) -> FetchableSource | None:
    """Return the fetchable source for one node, or None for local packages."""
    options = options or Options()
    origin = node.origin
    if node.name in options.exclude:
        return None
    if isinstance(origin, PathOrigin):
        return None
    if isinstance(origin, RegistryOrigin):
        return _classify_registry(node, origin, options=options)
    if isinstance(origin, GitOrigin):
        return _classify_git(node, origin, options=options)
    raise UnclassifiableOriginError(
        "Package origin has no known source kind.",
        context={"package": str(node.id), "origin": repr(origin)},
    )


def check_local_path(node: PackageNode, *, root_dir: Path | None) -> SourceWarning | None:
    origin = node.origin
    if not isinstance(origin, PathOrigin) or origin.path is None or root_dir is None:
        return None
    root = Path(root_dir).resolve()
    location = origin.path if origin.path.is_absolute() else root / origin.path
    if location.resolve().is_relative_to(root):
        return None
    return SourceWarning(
        package=str(node.id),
        message="Local package lives outside the workspace and cannot be sourced offline.",
        path=str(origin.path),
    )


def classify_graph(
    graph: LockGraph,
    *,
    options: Options | None = None,
    root_dir: Path | None = None,
    logger: StructuredLogger | None = None,
) -> ClassifiedSources:
    options = options or Options()
    nodes = graph.nodes
    if options.max_workers is not None and options.max_workers > 1:
        with ThreadPoolExecutor(max_workers=options.max_workers) as executor:
            results = list(executor.map(lambda node: classify(node, options=options), nodes))
    else:
        results = [classify(node, options=options) for node in nodes]

    entries: list[FetchableSource] = []
    excluded: list[str] = []
    for node, entry in zip(nodes, results, strict=True):
        if entry is not None:
            entries.append(entry)
        elif node.name in options.exclude:
            excluded.append(str(node.id))
            _log(logger, node, "Package excluded from offline sourcing.")

    found = _local_path_warnings(nodes, root_dir=root_dir)
    for item in found:
        warnings.warn(f"{item.package}: {item.message}", OutsideWorkspaceWarning, stacklevel=2)
        _log(logger, None, item.message, level="warning", package=item.package, path=item.path)

    return ClassifiedSources(
        entries=tuple(separate_destinations(entries)),
        warnings=tuple(found),
        excluded=tuple(excluded),
    )


def separate_destinations(entries: Iterable[FetchableSource]) -> list[FetchableSource]:
    """Suffix `dest` with a short key hash wherever distinct fetch targets share it.

    Entries with the same dedup key keep their destination so they still
    collapse in `order_sources()`.
    """
    entries = list(entries)
    targets: defaultdict[str, set[tuple[str, ...]]] = defaultdict(set)
    for entry in entries:
        targets[entry.dest].add((entry.kind, *entry.key()))
    return [
        replace(entry, dest=f"{entry.dest}-{_target_hash(entry)}")
        if len(targets[entry.dest]) > 1
        else entry
        for entry in entries
    ]


def _target_hash(entry: FetchableSource) -> str:
    identity = "\0".join((entry.kind, *entry.key()))
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()[:DEST_SUFFIX_LEN]


def _classify_registry(node: PackageNode, origin: RegistryOrigin, *, options: Options) -> Archive:
    checksum = origin.checksum or node.checksum
    if not checksum:
        raise UnclassifiableOriginError(
            "Registry package has no checksum to verify its archive.",
            hint="Offline builds cannot trust unverified downloads.",
            context={"package": str(node.id), "index": origin.index_url},
        )
    template = options.template_for(origin.index_url)
    if template is None:
        raise UnclassifiableOriginError(
            "No download template is known for this registry.",
            hint="Add the registry index URL to Options.registry_templates.",
            context={"package": str(node.id), "index": origin.index_url},
        )
    return Archive(
        url=download_url(template, name=node.name, version=node.version, checksum=checksum),
        sha256=checksum,
        dest=f"{options.vendor_dir}/{node.name}-{node.version}",
    )


def _classify_git(node: PackageNode, origin: GitOrigin, *, options: Options) -> GitSource:
    if not origin.url:
        raise UnclassifiableOriginError(
            "Git package has no repository URL.",
            context={"package": str(node.id)},
        )
    if not origin.commit:
        raise UnclassifiableOriginError(
            "Git package is not pinned to a commit.",
            hint="Cargo.lock git sources must end in `#<commit>`.",
            context={"package": str(node.id), "url": origin.url},
        )
    if not COMMIT_PATTERN.fullmatch(origin.commit):
        raise UnclassifiableOriginError(
            "Git package reference is not a commit hash.",
            hint="Only immutable commit hashes can be fetched reproducibly.",
            context={"package": str(node.id), "url": origin.url, "commit": origin.commit},
        )
    return GitSource(
        url=origin.url,
        commit=origin.commit,
        dest=git_dest(origin, options=options),
        subdirectory=origin.subdirectory,
    )


def _local_path_warnings(
    nodes: Iterable[PackageNode],
    *,
    root_dir: Path | None,
) -> list[SourceWarning]:
    found: list[SourceWarning] = []
    for node in nodes:
        warning = check_local_path(node, root_dir=root_dir)
        if warning is not None:
            found.append(warning)
    return found


def _log(
    logger: StructuredLogger | None,
    node: PackageNode | None,
    message: str,
    *,
    level: str = "info",
    package: str | None = None,
    path: str | None = None,
) -> None:
    if logger is None:
        return
    logger.log(
        operation="classify",
        stage="classify",
        package=package or (str(node.id) if node is not None else None),
        message=message,
        level=level,
        extra={"path": path} if path is not None else None,
    )
