"""Cargo.lock reading into an immutable package graph."""

from flatcrate.lockfile.io import SUPPORTED_LOCK_VERSIONS, parse_lockfile, read_lockfile
from flatcrate.lockfile.model import (
    BuildOrder,
    GitOrigin,
    LockGraph,
    OriginDescriptor,
    PackageId,
    PackageNode,
    PathOrigin,
    RegistryOrigin,
)
from flatcrate.lockfile.origin import canonical_git_url, git_reference, parse_origin

__all__ = [
    "SUPPORTED_LOCK_VERSIONS",
    "BuildOrder",
    "GitOrigin",
    "LockGraph",
    "OriginDescriptor",
    "PackageId",
    "PackageNode",
    "PathOrigin",
    "RegistryOrigin",
    "canonical_git_url",
    "git_reference",
    "parse_lockfile",
    "parse_origin",
    "read_lockfile",
]
