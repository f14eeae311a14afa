"""
Save a JSON manifest describing one instrumentation run.

The manifest lists every rewritten file with its counter variable, the import
set written into the driver, and the environment the run happened in, so the
operator knows exactly what has to be restored afterwards.
"""

from __future__ import annotations

import json
import platform
import subprocess
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import psutil

from compilercover.config import CoverConfig
from compilercover.walker import WalkContext


def get_toolchain_version(tool: tuple[str, ...]) -> str:
    """
    Return the output of ``<tool[0]> version`` (e.g. ``go version``).

    Falls back to "unknown" if the command is missing or fails.
    """
    try:
        result = subprocess.run(
            [tool[0], "version"],
            capture_output=True,
            text=True,
            timeout=30,
        )
    except (OSError, subprocess.TimeoutExpired):
        return "unknown"
    if result.returncode != 0:
        return "unknown"
    return result.stdout.strip() or "unknown"


def get_hardware_info() -> dict[str, Any]:
    return {
        "cpu_count_logical": psutil.cpu_count(logical=True),
        "cpu_count_physical": psutil.cpu_count(logical=False),
        "total_ram_gb": round(psutil.virtual_memory().total / (1024**3), 2),
    }


def build_manifest(ctx: WalkContext, config: CoverConfig, driver_path: Path) -> dict[str, Any]:
    return {
        "run_id": str(uuid.uuid4()),
        "created": datetime.now(timezone.utc).isoformat(),
        "environment": {
            "hostname": platform.node(),
            "os": platform.platform(),
            "toolchain_version": get_toolchain_version(config.tool),
        },
        "hardware": get_hardware_info(),
        "configuration": config.to_dict(),
        "imports": ctx.import_dirs,
        "files": [
            {
                "path": registration.path,
                "package": registration.package,
                "id": registration.var_id,
                "variable": registration.var_name,
            }
            for registration in ctx.registrations
        ],
        "driver": str(driver_path),
    }


def save_manifest(manifest: dict[str, Any], manifest_path: Path) -> None:
    """Write the manifest; failures propagate like every other write."""
    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2, sort_keys=True)
    print(f"[+] Saved instrumentation manifest to {manifest_path}", file=sys.stderr)
