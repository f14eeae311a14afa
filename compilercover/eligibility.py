"""
Decide which files of a toolchain tree receive coverage instrumentation.

The filter works on the canonical, anchor-relative form of a path (for the Go
compiler: ``cmd/compile/internal/ssa/rewrite.go``). Every rule is a pure
function of that string, so the same path always gets the same answer.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from pathlib import PurePath

DEFAULT_ANCHOR = "cmd/compile"

# mkbuiltin.go generates builtin.go, and a test compares their timestamps.
GENERATOR_PAIR = ("mkbuiltin.go", "builtin.go")

EXCLUDED_PACKAGES = frozenset(
    {
        "gen",  # generator sources
        "testdata",  # test fixtures
        "builtin",  # builtin stubs
        "test",  # top-level test package
    }
)


@dataclass(frozen=True)
class SourceUnit:
    """One discovered file, identified by its anchor-relative path."""

    path: str

    @property
    def directory(self) -> str:
        return posixpath.dirname(self.path)

    @property
    def name(self) -> str:
        return posixpath.basename(self.path)

    @property
    def package(self) -> str:
        """The last segment of the containing directory."""
        return posixpath.basename(self.directory)


@dataclass(frozen=True)
class EligibilityRules:
    """The fixed rule set applied by :meth:`accept`."""

    anchor: str = DEFAULT_ANCHOR
    source_suffix: str = ".go"
    test_suffix: str = "_test.go"
    generator_pair: tuple[str, str] = GENERATOR_PAIR
    excluded_packages: frozenset[str] = field(default=EXCLUDED_PACKAGES)

    def __post_init__(self) -> None:
        anchor = self.anchor.strip("/")
        if not anchor:
            raise ValueError("anchor must name at least one path segment")
        object.__setattr__(self, "anchor", anchor)

    @property
    def anchor_package(self) -> str:
        """The package the driver is compiled into; never instrumented."""
        return posixpath.basename(self.anchor)

    def canonicalize(self, path: str | PurePath) -> str | None:
        """
        Return the anchor-relative form of ``path``.

        The result starts at the first occurrence of the anchor segments and
        uses forward slashes. Paths that are not strictly below the anchor
        return None.
        """
        posix = PurePath(path).as_posix()
        marker = f"/{self.anchor}/"
        i = f"/{posix}".find(marker)
        if i == -1:
            return None
        canonical = posixpath.normpath(posix[i:])
        if not canonical.startswith(f"{self.anchor}/"):
            return None
        return canonical

    def accept(self, path: str | PurePath) -> bool:
        """Return True if the file at ``path`` should be instrumented."""
        canonical = self.canonicalize(path)
        if canonical is None:
            return False
        unit = SourceUnit(canonical)
        name = unit.name

        if not name.endswith(self.source_suffix):
            return False
        if name.endswith(self.test_suffix):
            return False
        if name in self.generator_pair:
            return False
        if unit.package in self.excluded_packages or unit.package == self.anchor_package:
            # The anchor package hosts the driver, which imports every
            # instrumented package: instrumenting it would be a cycle.
            return False
        return True

    def source_unit(self, path: str | PurePath) -> SourceUnit | None:
        """Return the SourceUnit for an accepted path, or None."""
        if not self.accept(path):
            return None
        return SourceUnit(self.canonicalize(path))


DEFAULT_RULES = EligibilityRules()


def accept(path: str | PurePath, rules: EligibilityRules = DEFAULT_RULES) -> bool:
    """Module-level shortcut for ``rules.accept(path)``."""
    return rules.accept(path)
