"""
Walk a toolchain tree and instrument every eligible file in place.

For each accepted file the walker runs the external cover tool, writes the
rewritten source back over the original, and records what the driver needs:
the package directory to import and a registration binding the file to its
counter variable. All of that state lives in a WalkContext returned to the
caller; nothing is kept at module level.

The walk is fatal on the first error. A half-instrumented tree is not worth
saving, so tool failures raise InstrumentationError and I/O failures
propagate as OSError.
"""

from __future__ import annotations

import os
import subprocess
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from compilercover.config import CoverConfig
from compilercover.eligibility import EligibilityRules, SourceUnit


class InstrumentationError(RuntimeError):
    """The external cover tool failed on a file."""

    def __init__(self, path: str, returncode: int, output: str) -> None:
        self.path = path
        self.returncode = returncode
        self.output = output
        message = f"cover tool failed on {path} (exit status {returncode})"
        if output.strip():
            message += f":\n{output.rstrip()}"
        super().__init__(message)


@dataclass(frozen=True)
class Registration:
    """Binds one instrumented file to its package-qualified counter variable."""

    unit: SourceUnit
    var_id: int
    var_name: str

    @property
    def path(self) -> str:
        return self.unit.path

    @property
    def package(self) -> str:
        return self.unit.package


@dataclass
class WalkContext:
    """Cross-file state accumulated during one walk."""

    next_id: int = 0
    # Insertion-ordered set of package directories.
    imports: dict[str, None] = field(default_factory=dict)
    registrations: list[Registration] = field(default_factory=list)

    def add_import(self, directory: str) -> bool:
        """Record ``directory``; return False if it was already present."""
        if directory in self.imports:
            return False
        self.imports[directory] = None
        return True

    def register(self, unit: SourceUnit, var_name: str) -> Registration:
        registration = Registration(unit=unit, var_id=self.next_id, var_name=var_name)
        self.registrations.append(registration)
        self.next_id += 1
        return registration

    @property
    def import_dirs(self) -> list[str]:
        return list(self.imports)


def iter_tree(top: Path) -> Iterator[Path]:
    """
    Yield every file below ``top`` depth-first in lexical order.

    Directories are descended into at the point where they sort among their
    siblings. Symlinks are reported but never followed. A directory that
    cannot be read raises OSError.
    """
    with os.scandir(top) as it:
        entries = sorted(it, key=lambda entry: entry.name)
    for entry in entries:
        if entry.is_dir(follow_symlinks=False):
            yield from iter_tree(Path(entry.path))
        else:
            yield Path(entry.path)


def run_cover_tool(config: CoverConfig, path: str, var_name: str) -> bytes:
    """
    Run ``<tool> -mode=<mode> -var <var_name> <path>`` from the tree root.

    Return the rewritten source printed on stdout. A non-zero exit status or
    any diagnostic on stderr raises InstrumentationError with everything the
    tool printed.
    """
    cmd = [*config.tool, f"-mode={config.mode}", "-var", var_name, path]
    result = subprocess.run(cmd, cwd=config.root, capture_output=True)
    if result.returncode != 0 or result.stderr:
        output = (result.stdout + result.stderr).decode("utf-8", errors="replace")
        raise InstrumentationError(path, result.returncode, output)
    return result.stdout


def instrument_file(config: CoverConfig, unit: SourceUnit, var_name: str) -> None:
    """Rewrite ``unit`` in place with the cover tool's output."""
    rewritten = run_cover_tool(config, unit.path, var_name)
    (config.root / unit.path).write_bytes(rewritten)


def visit(
    ctx: WalkContext,
    config: CoverConfig,
    path: Path,
    rules: EligibilityRules | None = None,
    dry_run: bool = False,
) -> Registration | None:
    """Apply the filter to one file and instrument it if accepted."""
    rules = rules or config.rules
    unit = rules.source_unit(path.relative_to(config.root))
    if unit is None:
        return None

    if ctx.add_import(unit.directory):
        print(f"[+] Importing package {unit.directory}")

    var_name = config.var_name(ctx.next_id)
    print(f"[*] Instrumenting {unit.path} as {var_name}")
    if not dry_run:
        instrument_file(config, unit, var_name)
    return ctx.register(unit, var_name)


def walk(config: CoverConfig, dry_run: bool = False) -> WalkContext:
    """Instrument every eligible file below the configured subtree."""
    subtree = config.subtree
    if not subtree.is_dir():
        raise FileNotFoundError(f"Subtree {subtree} does not exist or is not a directory")

    print(f"[+] Walking {subtree}", file=sys.stderr)
    ctx = WalkContext()
    rules = config.rules
    for path in iter_tree(subtree):
        visit(ctx, config, path, rules=rules, dry_run=dry_run)
    verb = "Selected" if dry_run else "Instrumented"
    print(
        f"[+] {verb} {len(ctx.registrations)} files in {len(ctx.imports)} packages.",
        file=sys.stderr,
    )
    return ctx
