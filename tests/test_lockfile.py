from pathlib import Path

import pytest

from flatcrate.errors import MalformedLockError, MissingChecksumError, UnsupportedLockVersionError
from flatcrate.lockfile import (
    GitOrigin,
    LockGraph,
    PackageId,
    PackageNode,
    PathOrigin,
    RegistryOrigin,
    canonical_git_url,
    parse_lockfile,
    read_lockfile,
)

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"


def test_parse_v3_lock_builds_sorted_arena_with_resolved_edges(scenario_lock: str) -> None:
    graph = parse_lockfile(scenario_lock)

    assert graph.version == 3
    assert [node.name for node in graph.nodes] == ["app", "foo", "serde"]
    app, foo, serde = graph.nodes
    assert app.dependencies == (1, 2)
    assert foo.dependencies == (2,)
    assert serde.dependencies == ()
    assert isinstance(app.origin, PathOrigin)
    assert foo.origin == GitOrigin(url="https://example.com/foo", commit="deadbeef")
    assert serde.origin == RegistryOrigin(
        index_url="https://github.com/rust-lang/crates.io-index",
        checksum="abc123",
    )
    assert graph.index[PackageId("serde", "1.0.200", CRATES_IO)] == 2


def test_parse_v4_lock_with_sparse_registry() -> None:
    graph = parse_lockfile(
        """\
version = 4

[[package]]
name = "libc"
version = "0.2.155"
source = "sparse+https://index.crates.io/"
checksum = "97b3888a4aecf77e811145cadf6eef5901f4782c53886191b2f693f24761847c"
"""
    )

    (libc,) = graph.nodes
    assert graph.version == 4
    assert libc.origin == RegistryOrigin(
        index_url="https://index.crates.io/",
        checksum="97b3888a4aecf77e811145cadf6eef5901f4782c53886191b2f693f24761847c",
        sparse=True,
    )


def test_lock_without_version_key_is_v2_and_resolves_full_references() -> None:
    graph = parse_lockfile(
        f"""\
[[package]]
name = "app"
version = "0.1.0"
dependencies = [
 "serde 1.0.200 ({CRATES_IO})",
]

[[package]]
name = "serde"
version = "1.0.200"
source = "{CRATES_IO}"
checksum = "abc123"
"""
    )

    assert graph.version == 2
    assert graph.nodes[0].dependencies == (1,)


def test_v1_lock_reads_checksums_from_metadata() -> None:
    graph = parse_lockfile(
        f"""\
[[package]]
name = "app"
version = "0.1.0"
dependencies = [
 "serde 1.0.200 ({CRATES_IO})",
]

[[package]]
name = "serde"
version = "1.0.200"
source = "{CRATES_IO}"

[metadata]
"checksum serde 1.0.200 ({CRATES_IO})" = "abc123"
"""
    )

    assert graph.version == 1
    (serde,) = graph.find("serde")
    assert serde.checksum == "abc123"


def test_v1_reference_without_commit_fragment_resolves_git_package() -> None:
    commit = "0123456789abcdef0123456789abcdef01234567"
    graph = parse_lockfile(
        f"""\
[[package]]
name = "app"
version = "0.1.0"
dependencies = [
 "bar 0.1.0 (git+https://github.com/acme/bar?tag=v1.0)",
 "serde 1.0.200 ({CRATES_IO})",
]

[[package]]
name = "bar"
version = "0.1.0"
source = "git+https://github.com/acme/bar?tag=v1.0#{commit}"

[[package]]
name = "serde"
version = "1.0.200"
source = "{CRATES_IO}"

[metadata]
"checksum serde 1.0.200 ({CRATES_IO})" = "abc123"
"""
    )

    assert graph.version == 1
    app, bar, _ = graph.nodes
    assert app.dependencies == (1, 2)
    assert bar.origin == GitOrigin(
        url="https://github.com/acme/bar",
        commit=commit,
        reference=("tag", "v1.0"),
    )


def test_v1_lock_with_none_checksum_is_missing_checksum() -> None:
    with pytest.raises(MissingChecksumError) as excinfo:
        parse_lockfile(
            f"""\
[[package]]
name = "serde"
version = "1.0.200"
source = "{CRATES_IO}"

[metadata]
"checksum serde 1.0.200 ({CRATES_IO})" = "<none>"
"""
        )

    assert excinfo.value.package == "serde 1.0.200"


def test_invalid_toml_is_malformed() -> None:
    with pytest.raises(MalformedLockError):
        parse_lockfile("version = 3\nversion = 4\n")


@pytest.mark.parametrize("version", [0, 5, 99])
def test_unknown_lock_versions_are_rejected(version: int) -> None:
    with pytest.raises(UnsupportedLockVersionError) as excinfo:
        parse_lockfile(f"version = {version}\n")

    assert excinfo.value.context["version"] == str(version)


def test_registry_entry_without_checksum_names_the_package() -> None:
    with pytest.raises(MissingChecksumError) as excinfo:
        parse_lockfile(
            f"""\
version = 3

[[package]]
name = "serde"
version = "1.0.200"
source = "{CRATES_IO}"
"""
        )

    assert excinfo.value.package == "serde 1.0.200"
    assert excinfo.value.code == "E_MISSING_CHECKSUM"


def test_duplicate_entries_merge_dependency_edges() -> None:
    graph = parse_lockfile(
        """\
version = 3

[[package]]
name = "app"
version = "0.1.0"
dependencies = ["unix-only"]

[[package]]
name = "app"
version = "0.1.0"
dependencies = ["windows-only", "unix-only"]

[[package]]
name = "unix-only"
version = "1.0.0"

[[package]]
name = "windows-only"
version = "1.0.0"
"""
    )

    assert len(graph) == 3
    (app,) = graph.find("app")
    assert [dep.name for dep in graph.dependencies_of(graph.index[app.id])] == [
        "unix-only",
        "windows-only",
    ]


def test_duplicate_entries_with_conflicting_checksums_are_malformed() -> None:
    with pytest.raises(MalformedLockError):
        parse_lockfile(
            f"""\
version = 3

[[package]]
name = "serde"
version = "1.0.200"
source = "{CRATES_IO}"
checksum = "abc123"

[[package]]
name = "serde"
version = "1.0.200"
source = "{CRATES_IO}"
checksum = "def456"
"""
        )


def test_ambiguous_dependency_reference_is_malformed() -> None:
    with pytest.raises(MalformedLockError) as excinfo:
        parse_lockfile(
            f"""\
version = 3

[[package]]
name = "app"
version = "0.1.0"
dependencies = ["rand"]

[[package]]
name = "rand"
version = "0.7.3"
source = "{CRATES_IO}"
checksum = "aaa"

[[package]]
name = "rand"
version = "0.8.5"
source = "{CRATES_IO}"
checksum = "bbb"
"""
        )

    assert "several" in str(excinfo.value)
    assert excinfo.value.package == "app 0.1.0"


def test_versioned_reference_disambiguates() -> None:
    graph = parse_lockfile(
        f"""\
version = 3

[[package]]
name = "app"
version = "0.1.0"
dependencies = ["rand 0.8.5"]

[[package]]
name = "rand"
version = "0.7.3"
source = "{CRATES_IO}"
checksum = "aaa"

[[package]]
name = "rand"
version = "0.8.5"
source = "{CRATES_IO}"
checksum = "bbb"
"""
    )

    (app,) = graph.find("app")
    assert [dep.version for dep in graph.dependencies_of(graph.index[app.id])] == ["0.8.5"]


def test_unresolvable_dependency_reference_is_malformed() -> None:
    with pytest.raises(MalformedLockError):
        parse_lockfile(
            """\
version = 3

[[package]]
name = "app"
version = "0.1.0"
dependencies = ["ghost"]
"""
        )


def test_unknown_source_kind_is_malformed() -> None:
    with pytest.raises(MalformedLockError):
        parse_lockfile(
            """\
version = 3

[[package]]
name = "odd"
version = "0.1.0"
source = "svn+https://example.com/odd"
"""
        )


def test_missing_name_is_malformed() -> None:
    with pytest.raises(MalformedLockError):
        parse_lockfile('version = 3\n\n[[package]]\nversion = "0.1.0"\n')


def test_read_lockfile_reports_missing_file(tmp_path: Path) -> None:
    with pytest.raises(MalformedLockError) as excinfo:
        read_lockfile(tmp_path / "Cargo.lock")

    assert excinfo.value.hint is not None


def test_read_lockfile_from_disk(tmp_path: Path, scenario_lock: str) -> None:
    lock_path = tmp_path / "Cargo.lock"
    lock_path.write_text(scenario_lock, encoding="utf-8")

    assert read_lockfile(lock_path) == parse_lockfile(scenario_lock)


def test_git_source_keeps_commit_and_recorded_reference() -> None:
    graph = parse_lockfile(
        """\
version = 3

[[package]]
name = "bar"
version = "0.1.0"
source = "git+https://github.com/acme/bar.git?tag=v1.0#0123456789abcdef0123456789abcdef01234567"
"""
    )

    (bar,) = graph.nodes
    assert bar.origin == GitOrigin(
        url="https://github.com/acme/bar",
        commit="0123456789abcdef0123456789abcdef01234567",
        reference=("tag", "v1.0"),
    )


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("git+https://github.com/acme/bar.git", "https://github.com/acme/bar"),
        ("git+https://github.com/acme/bar/?branch=main#abc", "https://github.com/acme/bar"),
        ("https://github.com/acme/bar", "https://github.com/acme/bar"),
    ],
)
def test_canonical_git_url(raw: str, expected: str) -> None:
    assert canonical_git_url(raw) == expected


def test_build_order_tolerates_cycles_and_reports_excluded_edges() -> None:
    graph = parse_lockfile(
        """\
version = 3

[[package]]
name = "a"
version = "0.1.0"
dependencies = ["b"]

[[package]]
name = "b"
version = "0.1.0"
dependencies = ["a"]
"""
    )

    order = graph.build_order()

    assert order.order == (1, 0)
    assert order.excluded_edges == ((1, 0),)


def test_build_order_places_dependencies_first(scenario_lock: str) -> None:
    graph = parse_lockfile(scenario_lock)

    order = graph.build_order()

    assert [graph.nodes[position].name for position in order.order] == ["serde", "foo", "app"]
    assert order.excluded_edges == ()


def test_roots_and_dependents(scenario_lock: str) -> None:
    graph = parse_lockfile(scenario_lock)

    assert graph.roots() == (0,)
    assert graph.dependents(2) == (0, 1)


def test_with_hints_returns_new_graph_without_touching_original() -> None:
    graph = LockGraph(
        version=3,
        nodes=(
            PackageNode(id=PackageId("app", "0.1.0"), origin=PathOrigin()),
            PackageNode(
                id=PackageId("sub", "0.1.0", "git+https://example.com/mono#deadbeef"),
                origin=GitOrigin(url="https://example.com/mono", commit="deadbeef"),
            ),
        ),
    )

    hinted = graph.with_hints(paths={"app": Path(".")}, subdirectories={"sub": "crates/sub/"})

    assert hinted.nodes[0].origin == PathOrigin(path=Path("."))
    assert hinted.nodes[1].origin == GitOrigin(
        url="https://example.com/mono",
        commit="deadbeef",
        subdirectory="crates/sub",
    )
    assert graph.nodes[1].origin.subdirectory is None
