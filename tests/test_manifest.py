"""
Tests for the instrumentation manifest (compilercover/manifest.py).
"""

import json
import subprocess
import tempfile
import unittest
from io import StringIO
from pathlib import Path
from unittest.mock import MagicMock, patch

from compilercover.config import CoverConfig
from compilercover.eligibility import SourceUnit
from compilercover.manifest import (
    build_manifest,
    get_hardware_info,
    get_toolchain_version,
    save_manifest,
)
from compilercover.walker import WalkContext


class TestGetToolchainVersion(unittest.TestCase):
    """Tests for toolchain version lookup."""

    @patch("compilercover.manifest.subprocess.run")
    def test_returns_version_output(self, mock_run):
        mock_run.return_value = MagicMock(returncode=0, stdout="go version go1.22.1 linux/amd64\n")
        self.assertEqual(get_toolchain_version(("go", "tool", "cover")), "go version go1.22.1 linux/amd64")
        self.assertEqual(mock_run.call_args.args[0], ["go", "version"])

    @patch("compilercover.manifest.subprocess.run", side_effect=FileNotFoundError)
    def test_missing_tool_is_unknown(self, mock_run):
        self.assertEqual(get_toolchain_version(("go",)), "unknown")

    @patch("compilercover.manifest.subprocess.run")
    def test_failing_tool_is_unknown(self, mock_run):
        mock_run.return_value = MagicMock(returncode=1, stdout="")
        self.assertEqual(get_toolchain_version(("go",)), "unknown")

    @patch(
        "compilercover.manifest.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd="go", timeout=30),
    )
    def test_timeout_is_unknown(self, mock_run):
        self.assertEqual(get_toolchain_version(("go",)), "unknown")


class TestHardwareInfo(unittest.TestCase):
    def test_reports_cpu_and_memory(self):
        info = get_hardware_info()
        self.assertGreaterEqual(info["cpu_count_logical"], 1)
        self.assertGreater(info["total_ram_gb"], 0)


class TestBuildAndSaveManifest(unittest.TestCase):
    """Tests for manifest contents and persistence."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.config = CoverConfig(root=self.root)
        self.ctx = WalkContext()
        for path in ("cmd/compile/internal/gc/a.go", "cmd/compile/internal/gc/b.go"):
            unit = SourceUnit(path)
            self.ctx.add_import(unit.directory)
            self.ctx.register(unit, self.config.var_name(self.ctx.next_id))

    def tearDown(self):
        self.temp_dir.cleanup()

    @patch("compilercover.manifest.get_toolchain_version", return_value="go version test")
    def test_manifest_lists_files_and_imports(self, mock_version):
        manifest = build_manifest(self.ctx, self.config, self.root / "cmd/compile/cover.go")

        self.assertEqual(manifest["imports"], ["cmd/compile/internal/gc"])
        self.assertEqual(
            manifest["files"],
            [
                {
                    "path": "cmd/compile/internal/gc/a.go",
                    "package": "gc",
                    "id": 0,
                    "variable": "GoCover_0",
                },
                {
                    "path": "cmd/compile/internal/gc/b.go",
                    "package": "gc",
                    "id": 1,
                    "variable": "GoCover_1",
                },
            ],
        )
        self.assertEqual(manifest["environment"]["toolchain_version"], "go version test")
        self.assertEqual(manifest["configuration"]["driver_path"], "cmd/compile/cover.go")
        self.assertIn("run_id", manifest)
        self.assertIn("cpu_count_logical", manifest["hardware"])

    @patch("compilercover.manifest.get_toolchain_version", return_value="unknown")
    def test_save_manifest_writes_json(self, mock_version):
        manifest = build_manifest(self.ctx, self.config, self.root / "cmd/compile/cover.go")
        out = self.root / "out" / "manifest.json"
        with patch("sys.stderr", StringIO()):
            save_manifest(manifest, out)

        loaded = json.loads(out.read_text())
        self.assertEqual(loaded["files"][1]["variable"], "GoCover_1")
        self.assertEqual(loaded["run_id"], manifest["run_id"])


if __name__ == "__main__":
    unittest.main()
