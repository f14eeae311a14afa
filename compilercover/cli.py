"""
Command-line entry point: instrument a Go toolchain tree for coverage.

Run it from the ``src`` directory of a clean Go checkout. It rewrites every
eligible file under the anchor subtree with ``go tool cover`` and writes a
driver that appends the merged profile to a shared file at exit.
"""

from __future__ import annotations

import argparse
import sys
from textwrap import dedent

from compilercover.config import (
    COVER_MODES,
    DEFAULT_DRIVER_NAME,
    DEFAULT_EXIT_HOOK,
    DEFAULT_PROFILE_PATH,
    DEFAULT_TOOL,
    DEFAULT_VAR_PREFIX,
    CoverConfig,
)
from compilercover.driver import render_for_context, write_driver
from compilercover.eligibility import DEFAULT_ANCHOR
from compilercover.manifest import build_manifest, save_manifest
from compilercover.utils import TeeLogger
from compilercover.walker import InstrumentationError, walk

WORKFLOW = dedent("""
    typical workflow (run once, against a clean checkout):
      rm /tmp/cover.out                   # remove old data, if any
      cd go/src                           # with GOROOT/PATH set up
      compilercover                       # add coverage
      ./all.bash                          # run all tests with coverage enabled
      git checkout . && rm cmd/compile/cover.go
      ./make.bash                         # recompile without coverage
      go tool cover -html=/tmp/cover.out  # display results

    Running it twice over the same tree is not supported.
""")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="compilercover",
        description="Add statement coverage instrumentation to a Go compiler tree.",
        epilog=WORKFLOW,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--root",
        type=str,
        default=None,
        help="Directory holding the tree to instrument (default: current directory).",
    )
    parser.add_argument(
        "--anchor",
        type=str,
        default=DEFAULT_ANCHOR,
        help=f"Subtree to instrument, relative to the root (default: {DEFAULT_ANCHOR}).",
    )
    parser.add_argument(
        "--cover-tool",
        type=str,
        default=" ".join(DEFAULT_TOOL),
        help="Command that rewrites one file for coverage (default: 'go tool cover').",
    )
    parser.add_argument(
        "--mode",
        choices=COVER_MODES,
        default="set",
        help="Coverage mode passed to the cover tool and written to the profile header.",
    )
    parser.add_argument(
        "--var-prefix",
        type=str,
        default=DEFAULT_VAR_PREFIX,
        help=f"Prefix of the generated counter variables (default: {DEFAULT_VAR_PREFIX}).",
    )
    parser.add_argument(
        "--driver-name",
        type=str,
        default=DEFAULT_DRIVER_NAME,
        help=f"File name of the generated driver inside the anchor (default: {DEFAULT_DRIVER_NAME}).",
    )
    parser.add_argument(
        "--profile",
        type=str,
        default=DEFAULT_PROFILE_PATH,
        help=f"Profile the instrumented program appends to (default: {DEFAULT_PROFILE_PATH}).",
    )
    parser.add_argument(
        "--exit-hook",
        type=str,
        default=DEFAULT_EXIT_HOOK,
        help=(
            "Go function that registers the report writer to run at exit "
            f"(default: {DEFAULT_EXIT_HOOK}). Pass '' if the host calls coverageReport() itself."
        ),
    )
    parser.add_argument(
        "--manifest",
        type=str,
        default=None,
        help="Write a JSON manifest of the instrumented files to this path.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List the files that would be instrumented without touching the tree.",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also append all output to this file.",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Do not print a line per instrumented file.",
    )
    return parser


def run(config: CoverConfig, dry_run: bool = False) -> None:
    """Instrument the tree and write the driver (and manifest, if requested)."""
    ctx = walk(config, dry_run=dry_run)
    if dry_run:
        return
    driver_path = write_driver(config, render_for_context(ctx, config))
    if config.manifest_path is not None:
        save_manifest(build_manifest(ctx, config, driver_path), config.manifest_path)
    print(
        f"[+] Done. Coverage will be appended to {config.profile_path} at exit.",
        file=sys.stderr,
    )


def main(argv: list[str] | None = None) -> None:
    """Parse command-line arguments and run compilercover."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = CoverConfig.from_args(args)
    except ValueError as e:
        parser.error(str(e))

    original_stdout = sys.stdout
    original_stderr = sys.stderr
    tee_loggers = []
    if args.log_file or args.quiet:
        verbose = not args.quiet
        sys.stdout = TeeLogger(args.log_file, original_stdout, verbose=verbose)
        sys.stderr = TeeLogger(args.log_file, original_stderr, verbose=verbose)
        tee_loggers = [sys.stdout, sys.stderr]

    try:
        run(config, dry_run=args.dry_run)
    except (InstrumentationError, OSError) as e:
        print(f"[!] Fatal: {e}", file=sys.stderr)
        print(
            "[!] The tree may be partially instrumented; restore it before retrying.",
            file=sys.stderr,
        )
        sys.exit(1)
    finally:
        sys.stdout = original_stdout
        sys.stderr = original_stderr
        for tee_logger in tee_loggers:
            tee_logger.close()


if __name__ == "__main__":
    main()
