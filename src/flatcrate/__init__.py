"""Public package entrypoint for converting Cargo.lock into offline build sources."""

from .classify import OutsideWorkspaceWarning, SourceWarning, classify, classify_graph
from .config import Options
from .convert import Conversion, convert, convert_text
from .errors import (
    ErrorCode,
    FlatcrateError,
    MalformedLockError,
    MissingChecksumError,
    UnclassifiableOriginError,
    UnsupportedLockVersionError,
    ValidationError,
)
from .lockfile import LockGraph, PackageId, PackageNode, parse_lockfile, read_lockfile
from .observability import StructuredLogger
from .order import dedup_key, order_sources
from .sources import Archive, DirectorySource, GitSource, SourceSet
from .vendor import cargo_config, checksum_stub, normalized_manifest
from .workspace import scan_workspace

__all__ = [
    "Archive",
    "Conversion",
    "DirectorySource",
    "ErrorCode",
    "FlatcrateError",
    "GitSource",
    "LockGraph",
    "MalformedLockError",
    "MissingChecksumError",
    "Options",
    "OutsideWorkspaceWarning",
    "PackageId",
    "PackageNode",
    "SourceSet",
    "SourceWarning",
    "StructuredLogger",
    "UnclassifiableOriginError",
    "UnsupportedLockVersionError",
    "ValidationError",
    "cargo_config",
    "checksum_stub",
    "classify",
    "classify_graph",
    "convert",
    "convert_text",
    "dedup_key",
    "normalized_manifest",
    "order_sources",
    "parse_lockfile",
    "read_lockfile",
    "scan_workspace",
]
