"""
Generate the Go driver that aggregates coverage for an instrumented tree.

The driver is a single file compiled into the anchor package. It imports
every instrumented package, registers each file's counter, position and
statement-count arrays from ``init``, and installs an exit hook that appends
the merged profile to a shared output file.

Rendering is a pure function of the walk results (:func:`render_driver`);
only :func:`write_driver` touches the filesystem.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Iterable

from compilercover.config import CoverConfig
from compilercover.walker import Registration, WalkContext

DRIVER_PACKAGE = "main"

# Go's "%" verbs are doubled because the template goes through "%" formatting.
DRIVER_TEMPLATE = r"""// Code generated by compilercover. DO NOT EDIT.

package %(package)s

import (
	"fmt"
	"os"
	"sync/atomic"
	"testing"
%(imports)s)

func init() {
%(registrations)s
	cover = testing.Cover{
		Mode:            %(mode)s,
		Counters:        coverCounters,
		Blocks:          coverBlocks,
		CoveredPackages: " in ./...",
	}
%(exit_hook)s}

var (
	cover         testing.Cover
	coverFiles    []string
	coverCounters = make(map[string][]uint32)
	coverBlocks   = make(map[string][]testing.CoverBlock)
)

func coverRegisterFile(fileName string, counter []uint32, pos []uint32, numStmts []uint16) {
	if 3*len(counter) != len(pos) || len(counter) != len(numStmts) {
		panic("coverage: mismatched sizes")
	}
	if _, ok := coverCounters[fileName]; ok {
		// Already registered.
		return
	}
	coverFiles = append(coverFiles, fileName)
	coverCounters[fileName] = counter
	block := make([]testing.CoverBlock, len(counter))
	for i := range counter {
		block[i] = testing.CoverBlock{
			Line0: pos[3*i+0],
			Col0:  uint16(pos[3*i+2]),
			Line1: pos[3*i+1],
			Col1:  uint16(pos[3*i+2] >> 16),
			Stmts: numStmts[i],
		}
	}
	coverBlocks[fileName] = block
}

func coverageReport() {
	f, err := os.OpenFile(%(profile_path)s, os.O_WRONLY|os.O_APPEND|os.O_CREATE, 0666)
	mustBeNil(err)
	defer func() { mustBeNil(f.Close()) }()
	s, err := f.Stat()
	mustBeNil(err)
	if s.Size() == 0 {
		_, err := fmt.Fprintf(f, "mode: %%s\n", cover.Mode)
		mustBeNil(err)
	}

	for _, name := range coverFiles {
		counts := cover.Counters[name]
		blocks := cover.Blocks[name]
		for i := range counts {
			stmts := int64(blocks[i].Stmts)
			count := atomic.LoadUint32(&counts[i])
			_, err := fmt.Fprintf(f, "%%s:%%d.%%d,%%d.%%d %%d %%d\n", name,
				blocks[i].Line0, blocks[i].Col0,
				blocks[i].Line1, blocks[i].Col1,
				stmts,
				count)
			mustBeNil(err)
		}
	}
}

func mustBeNil(err error) {
	if err != nil {
		fmt.Fprintf(os.Stderr, "cover: %%s\n", err)
		os.Exit(2)
	}
}
"""

MANUAL_FLUSH_NOTE = (
    "\t// No exit hook configured: the host must call coverageReport() as its\n"
    "\t// last action or the coverage data is lost.\n"
)


def go_quote(text: str) -> str:
    """Quote ``text`` as a Go interpreted string literal."""
    # JSON string escapes are a subset of Go's; non-ASCII text stays as UTF-8
    # because Go rejects the surrogate-pair escapes JSON uses outside the BMP.
    return json.dumps(text, ensure_ascii=False)


def render_imports(directories: Iterable[str]) -> str:
    return "".join(f"\t{go_quote(directory)}\n" for directory in directories)


def render_registration(registration: Registration) -> str:
    qualified = f"{registration.package}.{registration.var_name}"
    return (
        f"\tcoverRegisterFile({go_quote(registration.path)}, "
        f"{qualified}.Count[:], {qualified}.Pos[:], {qualified}.NumStmt[:])\n"
    )


def render_driver(
    imports: Iterable[str],
    registrations: Iterable[Registration],
    mode: str = "set",
    profile_path: str = "/tmp/cover.out",
    exit_hook: str = "gc.AtExit",
    package: str = DRIVER_PACKAGE,
) -> str:
    """Return the driver source for the given import set and registrations."""
    if exit_hook:
        hook = f"\t{exit_hook}(coverageReport)\n"
    else:
        hook = MANUAL_FLUSH_NOTE
    return DRIVER_TEMPLATE % {
        "package": package,
        "imports": render_imports(imports),
        "registrations": "".join(render_registration(r) for r in registrations),
        "mode": go_quote(mode),
        "exit_hook": hook,
        "profile_path": go_quote(profile_path),
    }


def render_for_context(ctx: WalkContext, config: CoverConfig) -> str:
    return render_driver(
        ctx.import_dirs,
        ctx.registrations,
        mode=config.mode,
        profile_path=config.profile_path,
        exit_hook=config.exit_hook,
    )


def write_driver(config: CoverConfig, text: str) -> Path:
    """Write the driver to its fixed location, replacing any previous one."""
    driver_path = config.root / config.driver_path
    print(f"[+] Generating driver {config.driver_path}", file=sys.stderr)
    driver_path.write_text(text, encoding="utf-8")
    return driver_path
