"""
Tests for the utils module (compilercover/utils.py).
"""

import tempfile
import unittest
from io import StringIO
from pathlib import Path

from compilercover.utils import TeeLogger


class TestTeeLogger(unittest.TestCase):
    """Tests for the stream tee."""

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.log_path = Path(self.temp_dir.name) / "run.log"

    def tearDown(self):
        self.temp_dir.cleanup()

    def test_writes_to_both_outputs(self):
        stream = StringIO()
        tee = TeeLogger(self.log_path, stream)
        print("[+] Walking tree", file=tee)
        tee.close()

        self.assertEqual(stream.getvalue(), "[+] Walking tree\n")
        self.assertEqual(self.log_path.read_text(), "[+] Walking tree\n")

    def test_appends_to_existing_log(self):
        self.log_path.write_text("earlier\n")
        tee = TeeLogger(self.log_path, StringIO())
        print("later", file=tee)
        tee.close()
        self.assertEqual(self.log_path.read_text(), "earlier\nlater\n")

    def test_quiet_drops_per_file_lines(self):
        stream = StringIO()
        tee = TeeLogger(self.log_path, stream, verbose=False)
        print("[+] Importing package cmd/compile/internal/gc", file=tee)
        print("[*] Instrumenting cmd/compile/internal/gc/a.go as GoCover_0", file=tee)
        print("[+] Instrumented 1 files in 1 packages.", file=tee)
        tee.close()

        self.assertEqual(stream.getvalue(), "[+] Instrumented 1 files in 1 packages.\n")
        self.assertEqual(self.log_path.read_text(), "[+] Instrumented 1 files in 1 packages.\n")

    def test_verbose_keeps_per_file_lines(self):
        stream = StringIO()
        tee = TeeLogger(None, stream)
        print("[*] Instrumenting a.go as GoCover_0", file=tee)
        tee.close()
        self.assertEqual(stream.getvalue(), "[*] Instrumenting a.go as GoCover_0\n")

    def test_console_only_without_file(self):
        stream = StringIO()
        tee = TeeLogger(None, stream, verbose=False)
        print("[!] Fatal: boom", file=tee)
        tee.close()
        self.assertEqual(stream.getvalue(), "[!] Fatal: boom\n")
        self.assertFalse(self.log_path.exists())


if __name__ == "__main__":
    unittest.main()
