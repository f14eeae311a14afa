"""
Run configuration for compilercover.

Every value defaults to what instrumenting the Go compiler (``cmd/compile``)
requires; the command line can override each of them.
"""

from __future__ import annotations

import argparse
import posixpath
import shlex
from dataclasses import dataclass, field
from pathlib import Path

from compilercover.eligibility import DEFAULT_ANCHOR, EligibilityRules

COVER_MODES = ("set", "count", "atomic")

DEFAULT_TOOL = ("go", "tool", "cover")
DEFAULT_VAR_PREFIX = "GoCover_"
DEFAULT_DRIVER_NAME = "cover.go"
DEFAULT_PROFILE_PATH = "/tmp/cover.out"
DEFAULT_EXIT_HOOK = "gc.AtExit"


@dataclass
class CoverConfig:
    """Settings shared by the walker, the driver generator and the manifest."""

    root: Path = field(default_factory=Path.cwd)
    anchor: str = DEFAULT_ANCHOR
    tool: tuple[str, ...] = DEFAULT_TOOL
    mode: str = "set"
    var_prefix: str = DEFAULT_VAR_PREFIX
    driver_name: str = DEFAULT_DRIVER_NAME
    profile_path: str = DEFAULT_PROFILE_PATH
    exit_hook: str = DEFAULT_EXIT_HOOK
    manifest_path: Path | None = None

    def __post_init__(self) -> None:
        if self.mode not in COVER_MODES:
            raise ValueError(f"Unknown coverage mode {self.mode!r}; expected one of {COVER_MODES}")
        if not self.tool:
            raise ValueError("The cover tool command must not be empty")
        self.root = Path(self.root)
        self.anchor = self.anchor.strip("/")
        self.tool = tuple(self.tool)

    @property
    def rules(self) -> EligibilityRules:
        return EligibilityRules(anchor=self.anchor)

    @property
    def subtree(self) -> Path:
        """Absolute directory the walker descends into."""
        return self.root / self.anchor

    @property
    def driver_path(self) -> str:
        """Root-relative path of the generated driver."""
        return posixpath.join(self.anchor, self.driver_name)

    def var_name(self, var_id: int) -> str:
        return f"{self.var_prefix}{var_id}"

    def to_dict(self) -> dict[str, object]:
        return {
            "root": str(self.root),
            "anchor": self.anchor,
            "tool": list(self.tool),
            "mode": self.mode,
            "var_prefix": self.var_prefix,
            "driver_path": self.driver_path,
            "profile_path": self.profile_path,
            "exit_hook": self.exit_hook,
        }

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "CoverConfig":
        """Build a configuration from parsed command-line arguments."""
        return cls(
            root=Path(args.root) if args.root else Path.cwd(),
            anchor=args.anchor,
            tool=tuple(shlex.split(args.cover_tool)),
            mode=args.mode,
            var_prefix=args.var_prefix,
            driver_name=args.driver_name,
            profile_path=args.profile,
            exit_hook=args.exit_hook,
            manifest_path=Path(args.manifest) if args.manifest else None,
        )
