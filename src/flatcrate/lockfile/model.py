"""Lockfile typed model."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

from flatcrate.errors import ValidationError


@dataclass(frozen=True, slots=True)
class PackageId:
    name: str
    version: str
    source: str | None = None

    def sort_key(self) -> tuple[str, str, str]:
        return (self.name, self.version, self.source or "")

    def __str__(self) -> str:
        return f"{self.name} {self.version}"


@dataclass(frozen=True, slots=True)
class RegistryOrigin:
    index_url: str
    checksum: str | None
    sparse: bool = False


@dataclass(frozen=True, slots=True)
class GitOrigin:
    url: str
    commit: str | None
    reference: tuple[str, str] | None = None
    subdirectory: str | None = None


@dataclass(frozen=True, slots=True)
class PathOrigin:
    path: Path | None = None


OriginDescriptor = RegistryOrigin | GitOrigin | PathOrigin


@dataclass(frozen=True, slots=True)
class PackageNode:
    id: PackageId
    origin: OriginDescriptor
    checksum: str | None = None
    dependencies: tuple[int, ...] = ()

    @property
    def name(self) -> str:
        return self.id.name

    @property
    def version(self) -> str:
        return self.id.version

    @property
    def is_local(self) -> bool:
        return isinstance(self.origin, PathOrigin)


@dataclass(frozen=True, slots=True)
class BuildOrder:
    """Dependencies-first node order with the edges dropped to break cycles."""

    order: tuple[int, ...]
    excluded_edges: tuple[tuple[int, int], ...] = ()


@dataclass(frozen=True, slots=True)
class LockGraph:
    """Arena of package nodes; edges are indices into `nodes`."""

    version: int
    nodes: tuple[PackageNode, ...] = ()
    index: Mapping[PackageId, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.nodes)

    def node(self, package_id: PackageId) -> PackageNode:
        try:
            return self.nodes[self.index[package_id]]
        except KeyError as exc:
            raise ValidationError(
                "Package is not part of the lock graph.",
                context={"package": str(package_id)},
            ) from exc

    def find(self, name: str, version: str | None = None) -> list[PackageNode]:
        return [
            node
            for node in self.nodes
            if node.name == name and (version is None or node.version == version)
        ]

    def dependencies_of(self, position: int) -> tuple[PackageNode, ...]:
        return tuple(self.nodes[dep] for dep in self.nodes[position].dependencies)

    def dependents(self, position: int) -> tuple[int, ...]:
        return tuple(
            candidate
            for candidate, node in enumerate(self.nodes)
            if position in node.dependencies
        )

    def roots(self) -> tuple[int, ...]:
        """Local packages no other package depends on."""
        depended_on = {dep for node in self.nodes for dep in node.dependencies}
        return tuple(
            position
            for position, node in enumerate(self.nodes)
            if node.is_local and position not in depended_on
        )

    def build_order(self) -> BuildOrder:
        """Order nodes dependencies-first, excluding back edges of any cycle.

        Traversal starts from nodes in arena order (which is sorted by
        package id), so the result depends only on the graph contents.
        """
        state: dict[int, str] = {}
        order: list[int] = []
        excluded: list[tuple[int, int]] = []

        for start in range(len(self.nodes)):
            if start in state:
                continue
            stack: list[tuple[int, int]] = [(start, 0)]
            state[start] = "active"
            while stack:
                position, cursor = stack[-1]
                deps = self.nodes[position].dependencies
                if cursor < len(deps):
                    stack[-1] = (position, cursor + 1)
                    dep = deps[cursor]
                    dep_state = state.get(dep)
                    if dep_state is None:
                        state[dep] = "active"
                        stack.append((dep, 0))
                    elif dep_state == "active":
                        excluded.append((position, dep))
                    continue
                stack.pop()
                state[position] = "done"
                order.append(position)

        return BuildOrder(order=tuple(order), excluded_edges=tuple(excluded))

    def with_hints(
        self,
        *,
        paths: Mapping[str, Path] | None = None,
        subdirectories: Mapping[str, str] | None = None,
    ) -> LockGraph:
        """Return a copy with local paths and git subdirectories filled in."""
        paths = paths or {}
        subdirectories = subdirectories or {}
        nodes: list[PackageNode] = []
        for node in self.nodes:
            origin = node.origin
            if isinstance(origin, PathOrigin) and node.name in paths:
                origin = replace(origin, path=Path(paths[node.name]))
            elif isinstance(origin, GitOrigin) and node.name in subdirectories:
                subdirectory: str | None = subdirectories[node.name].strip("/")
                if subdirectory in ("", "."):
                    subdirectory = None
                origin = replace(origin, subdirectory=subdirectory)
            nodes.append(node if origin is node.origin else replace(node, origin=origin))
        return LockGraph(version=self.version, nodes=tuple(nodes), index=dict(self.index))
