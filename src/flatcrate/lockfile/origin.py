"""Parsing of cargo source id strings into origin descriptors."""

from __future__ import annotations

from pathlib import Path
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from flatcrate.errors import MalformedLockError
from flatcrate.lockfile.model import GitOrigin, OriginDescriptor, PathOrigin, RegistryOrigin

GIT_REFERENCE_KINDS = ("rev", "tag", "branch")


def canonical_git_url(url: str) -> str:
    """Strip the `git+` kind, query, fragment, trailing slashes and `.git`."""
    if url.startswith("git+"):
        url = url[len("git+") :]
    parts = urlsplit(url)
    path = parts.path.rstrip("/").removesuffix(".git")
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def git_reference(url: str) -> tuple[str, str] | None:
    query = dict(parse_qsl(urlsplit(url).query))
    for kind in GIT_REFERENCE_KINDS:
        if query.get(kind):
            return (kind, query[kind])
    return None


def parse_origin(source: str | None, *, checksum: str | None, package: str) -> OriginDescriptor:
    if source is None:
        return PathOrigin()
    kind, sep, rest = source.partition("+")
    if not sep or not rest:
        raise MalformedLockError(
            "Package source is not a cargo source id.",
            hint="Expected `registry+`, `sparse+`, `git+` or `path+` followed by a URL.",
            context={"package": package, "source": source},
        )
    if kind == "registry":
        return RegistryOrigin(index_url=rest, checksum=checksum)
    if kind == "sparse":
        return RegistryOrigin(index_url=rest, checksum=checksum, sparse=True)
    if kind == "git":
        fragment = urlsplit(rest).fragment
        return GitOrigin(
            url=canonical_git_url(rest),
            commit=fragment or None,
            reference=git_reference(rest),
        )
    if kind == "path":
        local = urlsplit(rest).path
        return PathOrigin(path=Path(local) if local else None)
    raise MalformedLockError(
        "Unknown package source kind.",
        context={"package": package, "source": source, "kind": kind},
    )
