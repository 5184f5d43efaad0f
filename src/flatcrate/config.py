"""Conversion options and their validation."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from flatcrate.errors import ValidationError

CRATES_IO_INDEXES = (
    "https://github.com/rust-lang/crates.io-index",
    "https://index.crates.io",
)
CRATES_IO_DOWNLOAD = "https://static.crates.io/crates/{crate}/{crate}-{version}.crate"

DEFAULT_VENDOR_DIR = "cargo/vendor"
DEFAULT_GIT_DIR = "flatpak-cargo/git"
DEFAULT_COMMIT_LEN = 7


def normalize_index_url(url: str) -> str:
    return url.rstrip("/")


@dataclass(frozen=True, slots=True)
class Options:
    """Pass-through parameters for classification.

    `registry_templates` maps a registry index URL to its cargo-style `dl`
    download template. crates.io is always known and may not be overridden
    to an empty value.
    """

    registry_templates: Mapping[str, str] = field(default_factory=dict)
    exclude: frozenset[str] = frozenset()
    vendor_dir: str = DEFAULT_VENDOR_DIR
    git_dir: str = DEFAULT_GIT_DIR
    commit_len: int = DEFAULT_COMMIT_LEN
    max_workers: int | None = None

    def __post_init__(self) -> None:
        if not self.vendor_dir or not self.git_dir:
            raise ValidationError("Options require non-empty vendor_dir and git_dir.")
        if self.commit_len < 4:
            raise ValidationError(
                "Options.commit_len is too short to identify a checkout.",
                context={"commit_len": str(self.commit_len)},
            )
        if self.max_workers is not None and self.max_workers < 1:
            raise ValidationError(
                "Options.max_workers must be positive.",
                context={"max_workers": str(self.max_workers)},
            )
        for index_url, template in self.registry_templates.items():
            if not index_url or not template:
                raise ValidationError(
                    "Registry templates need both an index URL and a download template.",
                    context={"index_url": index_url, "template": template},
                )
        if isinstance(self.exclude, str):
            raise ValidationError(
                "Options.exclude takes a collection of package names, not a single string.",
                hint="Wrap the name: exclude=frozenset({'serde'}).",
                context={"exclude": self.exclude},
            )
        # Accept any iterable of names for convenience.
        if not isinstance(self.exclude, frozenset):
            object.__setattr__(self, "exclude", frozenset(self.exclude))

    def template_for(self, index_url: str) -> str | None:
        wanted = normalize_index_url(index_url)
        for known, template in self.registry_templates.items():
            if normalize_index_url(known) == wanted:
                return template
        if wanted in CRATES_IO_INDEXES:
            return CRATES_IO_DOWNLOAD
        return None

    def is_crates_io(self, index_url: str) -> bool:
        return normalize_index_url(index_url) in CRATES_IO_INDEXES


__all__ = [
    "CRATES_IO_DOWNLOAD",
    "CRATES_IO_INDEXES",
    "DEFAULT_COMMIT_LEN",
    "DEFAULT_GIT_DIR",
    "DEFAULT_VENDOR_DIR",
    "Options",
    "normalize_index_url",
]
