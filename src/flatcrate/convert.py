"""Lockfile to offline source list conversion pipeline."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from flatcrate.classify import SourceWarning, classify_graph
from flatcrate.config import Options
from flatcrate.lockfile import LockGraph, parse_lockfile, read_lockfile
from flatcrate.observability import StructuredLogger
from flatcrate.order import order_sources
from flatcrate.sources import DirectorySource, SourceEntry, SourceSet
from flatcrate.workspace import scan_workspace


@dataclass(frozen=True, slots=True)
class Conversion:
    root: DirectorySource
    sources: SourceSet = field(default_factory=SourceSet)
    warnings: tuple[SourceWarning, ...] = ()
    excluded: tuple[str, ...] = ()

    def entries(self) -> tuple[SourceEntry, ...]:
        """The root directory first, followed by the ordered source set."""
        return (self.root, *self.sources)

    def to_payload(self) -> list[dict[str, object]]:
        return [entry.to_payload() for entry in self.entries()]

    def report(self) -> dict[str, object]:
        return {
            "root": str(self.root.path),
            "sources_digest": self.sources.digest(),
            "archives": len(self.sources.archives()),
            "git_sources": len(self.sources.git_sources()),
            "excluded": list(self.excluded),
            "warnings": [
                {"package": item.package, "message": item.message, "path": item.path}
                for item in self.warnings
            ],
        }


def convert(
    lock: str | Path | LockGraph,
    *,
    root_dir: str | Path,
    options: Options | None = None,
    logger: StructuredLogger | None = None,
    path_hints: Mapping[str, Path] | None = None,
    subdirectories: Mapping[str, str] | None = None,
) -> Conversion:
    """Read, classify and order; any failure aborts the whole conversion.

    Without explicit `path_hints`, local package locations come from scanning
    the `Cargo.toml` under `root_dir` when one exists.
    """
    options = options or Options()
    logger = logger if logger is not None else StructuredLogger()

    graph = lock if isinstance(lock, LockGraph) else read_lockfile(lock)
    build_order = graph.build_order()
    logger.log(
        operation="read_lock",
        stage="read",
        package=None,
        message="Read lock graph.",
        extra={
            "version": graph.version,
            "packages": len(graph),
            "ordered": len(build_order.order),
        },
    )
    for owner, dep in build_order.excluded_edges:
        logger.log(
            operation="read_lock",
            stage="read",
            package=str(graph.nodes[owner].id),
            message="Cyclic dependency edge excluded from ordering.",
            level="debug",
            extra={"dependency": str(graph.nodes[dep].id)},
        )

    if path_hints is None and (Path(root_dir) / "Cargo.toml").is_file():
        path_hints = scan_workspace(root_dir)
        logger.log(
            operation="scan_workspace",
            stage="read",
            package=None,
            message="Scanned workspace manifests for local packages.",
            extra={"packages": len(path_hints)},
        )
    if path_hints or subdirectories:
        graph = graph.with_hints(paths=path_hints, subdirectories=subdirectories)

    classified = classify_graph(graph, options=options, root_dir=Path(root_dir), logger=logger)
    logger.log(
        operation="classify",
        stage="classify",
        package=None,
        message="Classified package origins.",
        extra={"entries": len(classified.entries), "warnings": len(classified.warnings)},
    )

    sources = order_sources(classified.entries)
    logger.log(
        operation="order",
        stage="order",
        package=None,
        message="Ordered source set.",
        extra={
            "sources": len(sources),
            "collapsed": len(classified.entries) - len(sources),
            "digest": sources.digest(),
        },
    )
    return Conversion(
        root=DirectorySource(path=Path(root_dir)),
        sources=sources,
        warnings=classified.warnings,
        excluded=classified.excluded,
    )


def convert_text(
    raw: str,
    *,
    root_dir: str | Path,
    options: Options | None = None,
    logger: StructuredLogger | None = None,
    path_hints: Mapping[str, Path] | None = None,
    subdirectories: Mapping[str, str] | None = None,
) -> Conversion:
    return convert(
        parse_lockfile(raw),
        root_dir=root_dir,
        options=options,
        logger=logger,
        path_hints=path_hints,
        subdirectories=subdirectories,
    )
