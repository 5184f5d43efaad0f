"""Deduplication and deterministic ordering of classified sources."""

from __future__ import annotations

from collections.abc import Iterable

from flatcrate.errors import ValidationError
from flatcrate.sources import (
    KIND_RANK,
    Archive,
    DirectorySource,
    FetchableSource,
    GitSource,
    SourceEntry,
    SourceSet,
    sort_key,
)


def dedup_key(entry: FetchableSource) -> tuple[str, ...]:
    """Identity of the fetch target: (url, sha256) or (url, commit, subdirectory)."""
    return entry.key()


def order_sources(entries: Iterable[SourceEntry]) -> SourceSet:
    """Collapse identical fetch targets and sort archives before git sources.

    Entries are ordered by kind, then dedup key, then destination; the first
    entry of each key survives, so the choice between collapsed duplicates
    does not depend on input order.
    """
    fetchable: list[FetchableSource] = []
    for entry in entries:
        if isinstance(entry, DirectorySource):
            raise ValidationError(
                "The root directory source is emitted separately from the source set.",
                context={"path": str(entry.path)},
            )
        if not isinstance(entry, (Archive, GitSource)):
            raise ValidationError(
                "Unknown source entry type.",
                context={"entry": repr(entry)},
            )
        fetchable.append(entry)

    unique: list[FetchableSource] = []
    seen: set[tuple[int, tuple[str, ...]]] = set()
    for entry in sorted(fetchable, key=sort_key):
        identity = (KIND_RANK[entry.kind], dedup_key(entry))
        if identity in seen:
            continue
        seen.add(identity)
        unique.append(entry)
    return SourceSet(entries=tuple(unique))
