"""Fetchable source entries and the ordered source set."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Literal

import cbor2

from flatcrate.errors import ValidationError

SourceKind = Literal["archive", "git", "dir"]

ARCHIVE_TYPE = "tar-gzip"


@dataclass(frozen=True, slots=True)
class Archive:
    url: str
    sha256: str
    dest: str
    archive_type: str = ARCHIVE_TYPE
    strip_components: int = 1

    kind: ClassVar[SourceKind] = "archive"

    def key(self) -> tuple[str, ...]:
        return (self.url, self.sha256)

    def integrity(self) -> str:
        return self.sha256

    def to_payload(self) -> dict[str, object]:
        return {
            "type": self.kind,
            "archive-type": self.archive_type,
            "url": self.url,
            "sha256": self.sha256,
            "strip-components": self.strip_components,
            "dest": self.dest,
        }


@dataclass(frozen=True, slots=True)
class GitSource:
    url: str
    commit: str
    dest: str
    subdirectory: str | None = None

    kind: ClassVar[SourceKind] = "git"

    def key(self) -> tuple[str, ...]:
        return (self.url, self.commit, self.subdirectory or "")

    def integrity(self) -> str:
        return self.commit

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "type": self.kind,
            "url": self.url,
            "commit": self.commit,
            "dest": self.dest,
        }
        if self.subdirectory is not None:
            payload["subdirectory"] = self.subdirectory
        return payload


@dataclass(frozen=True, slots=True)
class DirectorySource:
    """The root package's own tree; never integrity-pinned."""

    path: Path
    dest: str = "."

    kind: ClassVar[SourceKind] = "dir"

    def to_payload(self) -> dict[str, object]:
        return {"type": self.kind, "path": str(self.path), "dest": self.dest}


FetchableSource = Archive | GitSource
SourceEntry = Archive | GitSource | DirectorySource

KIND_RANK: dict[str, int] = {"archive": 0, "git": 1}


def sort_key(entry: FetchableSource) -> tuple[int, tuple[str, ...], str]:
    return (KIND_RANK[entry.kind], entry.key(), entry.dest)


@dataclass(frozen=True, slots=True)
class SourceSet:
    """Ordered unique fetchable sources. Build with `order_sources()`."""

    entries: tuple[FetchableSource, ...] = ()
    schema_version: int = 1

    def __post_init__(self) -> None:
        seen: set[tuple[int, tuple[str, ...]]] = set()
        destinations: set[str] = set()
        for entry in self.entries:
            if not isinstance(entry, (Archive, GitSource)):
                raise ValidationError(
                    "Source sets hold only archive and git entries.",
                    context={"entry": repr(entry)},
                )
            if not entry.integrity():
                raise ValidationError(
                    "Source entry has no integrity token.",
                    hint="Archives need a sha256 and git sources a pinned commit.",
                    context={"url": entry.url, "dest": entry.dest},
                )
            identity = (KIND_RANK[entry.kind], entry.key())
            if identity in seen:
                raise ValidationError(
                    "Source set contains the same fetch target twice.",
                    context={"url": entry.url, "dest": entry.dest},
                )
            if entry.dest in destinations:
                raise ValidationError(
                    "Two fetch targets would be unpacked into the same destination.",
                    hint="Distinct sources need distinct `dest` paths.",
                    context={"url": entry.url, "dest": entry.dest},
                )
            seen.add(identity)
            destinations.add(entry.dest)

    def __iter__(self) -> Iterator[FetchableSource]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def archives(self) -> tuple[Archive, ...]:
        return tuple(entry for entry in self.entries if isinstance(entry, Archive))

    def git_sources(self) -> tuple[GitSource, ...]:
        return tuple(entry for entry in self.entries if isinstance(entry, GitSource))

    def to_payload(self) -> list[dict[str, object]]:
        return [entry.to_payload() for entry in self.entries]

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def digest(self) -> str:
        canonical = json.dumps(self._payload(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def _payload(self) -> dict[str, object]:
        return {"schema_version": self.schema_version, "sources": self.to_payload()}


__all__ = [
    "ARCHIVE_TYPE",
    "Archive",
    "DirectorySource",
    "FetchableSource",
    "GitSource",
    "SourceEntry",
    "SourceKind",
    "SourceSet",
    "sort_key",
]
