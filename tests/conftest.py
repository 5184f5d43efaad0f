"""Shared test fixtures."""

from __future__ import annotations

import pytest

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"

SCENARIO_LOCK = f"""\
version = 3

[[package]]
name = "app"
version = "0.1.0"
dependencies = [
 "foo",
 "serde",
]

[[package]]
name = "foo"
version = "0.2.0"
source = "git+https://example.com/foo#deadbeef"
dependencies = [
 "serde",
]

[[package]]
name = "serde"
version = "1.0.200"
source = "{CRATES_IO}"
checksum = "abc123"
"""


@pytest.fixture
def scenario_lock() -> str:
    """Root `app` depending on git `foo` and registry `serde`."""
    return SCENARIO_LOCK
