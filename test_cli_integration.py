import unittest
import tempfile
import contextlib
import io
import json
import signal
import shutil
import subprocess
import sys
import time
from pathlib import Path
from unittest import mock

from dupe_resolver import cli
from dupe_resolver.core import calculate_checksums
from dupe_resolver.resolver import find_and_resolve


class TestDupeResolverCLI(unittest.TestCase):

    def setUp(self):
        self.test_root = Path(tempfile.mkdtemp(prefix="dupe_resolver_test_"))
        self.create_test_scenarios()

    def tearDown(self):
        shutil.rmtree(self.test_root, ignore_errors=True)

    def create_test_scenarios(self):
        self.tree = self.test_root / "tree"
        self.keep_dir = self.tree / "albums"
        self.remove_dir = self.tree / "phone"
        self.other_dir = self.tree / "misc"
        for directory in (self.keep_dir, self.remove_dir, self.other_dir):
            directory.mkdir(parents=True)

        # Resolved by rule
        (self.keep_dir / "x.png").write_text("RULE_DUPLICATE")
        (self.remove_dir / "y.png").write_text("RULE_DUPLICATE")

        # No rule covers misc/
        (self.other_dir / "a.txt").write_text("UNRESOLVED_DUPLICATE")
        (self.remove_dir / "a.txt").write_text("UNRESOLVED_DUPLICATE")

        # Unique
        (self.keep_dir / "unique.txt").write_text("UNIQUE_CONTENT")

        self.rules_file = self.test_root / "rules.json"
        self.write_rules([{"keep": str(self.keep_dir), "remove": str(self.remove_dir)}])

    def write_rules(self, rules):
        self.rules_file.write_text(json.dumps({"rules": rules}))

    def run_resolver(self, *args):
        cmd = [sys.executable, "-m", "dupe_resolver.cli"] + list(args)
        return subprocess.run(cmd, capture_output=True, text=True)

    def test_dry_run_default(self):
        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file))

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn(f"would delete {self.remove_dir / 'y.png'}", result.stdout)
        self.assertIn("unresolved duplicate, no rule found", result.stdout)
        self.assertIn("Would delete: 1", result.stdout)
        self.assertTrue((self.remove_dir / "y.png").exists())

    def test_live_deletes(self):
        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file), "--live")

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn(f"deleted {self.remove_dir / 'y.png'}", result.stdout)
        self.assertTrue((self.keep_dir / "x.png").exists())
        self.assertFalse((self.remove_dir / "y.png").exists())
        self.assertTrue((self.remove_dir / "a.txt").exists())

    def test_live_then_rescan(self):
        self.run_resolver(str(self.tree), "-c", str(self.rules_file), "--live")
        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file), "--live")

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertNotIn("y.png", result.stdout)
        self.assertIn("Deleted: 0", result.stdout)

    def test_dry_run_is_repeatable(self):
        first = self.run_resolver(str(self.tree), "-c", str(self.rules_file))
        second = self.run_resolver(str(self.tree), "-c", str(self.rules_file))

        self.assertEqual(first.stdout, second.stdout)

    def test_file_lines(self):
        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file))
        self.assertEqual(result.stdout.count("File: "), 5)

        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file), "--no-file-list")
        self.assertNotIn("File: ", result.stdout)

    def test_show_names(self):
        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file), "--show-names")

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("Same name: a.txt", result.stdout)

    def test_sha256_and_workers(self):
        result = self.run_resolver(
            str(self.tree), "-c", str(self.rules_file), "--hash", "sha256", "--workers", "3"
        )

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("Duplicates: 2", result.stdout)

    def test_progress_logged(self):
        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file))

        self.assertIn("Looking for files...", result.stderr)
        self.assertIn("Calculating checksums...", result.stderr)
        self.assertIn("Reporting duplicates...", result.stderr)

    def test_quiet_mode(self):
        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file), "--quiet")

        self.assertEqual(result.returncode, 0)
        self.assertEqual(result.stderr.strip(), "")
        self.assertIn("Duplicates: 2", result.stdout)

    def test_invalid_directory(self):
        result = self.run_resolver(str(self.test_root / "does_not_exist"), "-c", str(self.rules_file))

        self.assertNotEqual(result.returncode, 0)
        self.assertIn("Error", result.stderr)
        self.assertIn("not a valid directory", result.stderr)

    def test_quiet_and_verbose_conflict(self):
        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file), "-q", "-v")

        self.assertNotEqual(result.returncode, 0)
        self.assertIn("Cannot use both --quiet and --verbose", result.stderr)

    def test_invalid_workers(self):
        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file), "--workers", "0")

        self.assertEqual(result.returncode, 1)
        self.assertIn("Workers must be at least 1", result.stderr)

    def test_missing_rules_argument(self):
        result = self.run_resolver(str(self.tree))

        self.assertNotEqual(result.returncode, 0)
        self.assertIn("--rules", result.stderr)

    def test_invalid_rules(self):
        self.write_rules([{"keep": "relative/path", "remove": str(self.remove_dir)}])

        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file), "--live")

        self.assertEqual(result.returncode, 1)
        self.assertIn("must be an absolute path", result.stderr)
        self.assertTrue((self.remove_dir / "y.png").exists())

    def test_empty_rules(self):
        self.write_rules([])

        result = self.run_resolver(str(self.tree), "-c", str(self.rules_file))

        self.assertEqual(result.returncode, 1)
        self.assertIn("no rules", result.stderr)

    def test_path_with_spaces(self):
        spaced = self.test_root / "folder with spaces"
        keep = spaced / "keep me"
        remove = spaced / "remove me"
        keep.mkdir(parents=True)
        remove.mkdir()
        (keep / "file1.txt").write_text("SPACES")
        (remove / "file2.txt").write_text("SPACES")
        self.write_rules([{"keep": str(keep), "remove": str(remove) + "/"}])

        result = self.run_resolver(str(spaced), "-c", str(self.rules_file), "--live")

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertTrue((keep / "file1.txt").exists())
        self.assertFalse((remove / "file2.txt").exists())


class TestInterrupt(unittest.TestCase):

    def setUp(self):
        self.test_root = Path(tempfile.mkdtemp(prefix="dupe_resolver_interrupt_"))
        self.tree = self.test_root / "tree"
        self.keep_dir = self.tree / "keep"
        self.remove_dir = self.tree / "remove"
        self.keep_dir.mkdir(parents=True)
        self.remove_dir.mkdir()
        for i in range(3):
            (self.keep_dir / f"photo_{i}.jpg").write_text(f"PHOTO_{i}")
            (self.remove_dir / f"photo_{i}.jpg").write_text(f"PHOTO_{i}")
        self.rules_file = self.test_root / "rules.json"
        self.rules_file.write_text(json.dumps([{"keep": str(self.keep_dir), "remove": str(self.remove_dir)}]))
        self.handler_before = signal.getsignal(signal.SIGINT)

    def tearDown(self):
        shutil.rmtree(self.test_root, ignore_errors=True)

    def run_main(self, patch_target, side_effect):
        stdout, stderr = io.StringIO(), io.StringIO()
        with mock.patch(patch_target, side_effect=side_effect), \
                mock.patch("dupe_resolver.cli.setup_logging"), \
                contextlib.redirect_stdout(stdout), \
                contextlib.redirect_stderr(stderr):
            with self.assertRaises(SystemExit) as ctx:
                cli.main([str(self.tree), "-c", str(self.rules_file), "--live"])
        return ctx.exception.code, stdout.getvalue(), stderr.getvalue()

    def test_interrupt_during_resolution(self):
        def interrupted(*args, **kwargs):
            signal.raise_signal(signal.SIGINT)
            return find_and_resolve(*args, **kwargs)

        code, stdout, stderr = self.run_main("dupe_resolver.cli.find_and_resolve", interrupted)

        self.assertEqual(code, 130)
        self.assertIn("Stopping after the current file", stderr)
        self.assertIn("Operation cancelled by user", stderr)
        self.assertIn("Cancelled before all files were processed", stdout)
        self.assertIn("Deleted: 0", stdout)
        for i in range(3):
            self.assertTrue((self.remove_dir / f"photo_{i}.jpg").exists())
        self.assertEqual(signal.getsignal(signal.SIGINT), self.handler_before)

    def test_interrupt_during_hashing(self):
        def interrupted(*args, **kwargs):
            signal.raise_signal(signal.SIGINT)
            return calculate_checksums(*args, **kwargs)

        code, stdout, stderr = self.run_main("dupe_resolver.cli.calculate_checksums", interrupted)

        self.assertEqual(code, 130)
        self.assertIn("Operation cancelled by user", stderr)
        self.assertEqual(stdout, "")
        self.assertEqual(signal.getsignal(signal.SIGINT), self.handler_before)

    def test_second_interrupt_stops_immediately(self):
        def interrupted_twice(*args, **kwargs):
            signal.raise_signal(signal.SIGINT)
            signal.raise_signal(signal.SIGINT)
            return find_and_resolve(*args, **kwargs)

        code, stdout, stderr = self.run_main("dupe_resolver.cli.find_and_resolve", interrupted_twice)

        self.assertEqual(code, 130)
        self.assertIn("Operation cancelled by user", stderr)
        self.assertEqual(stdout, "")
        for i in range(3):
            self.assertTrue((self.remove_dir / f"photo_{i}.jpg").exists())


class TestPerformance(unittest.TestCase):

    def setUp(self):
        self.test_dir = Path(tempfile.mkdtemp(prefix="perf_test_"))

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_performance_many_files(self):
        keep = self.test_dir / "keep"
        remove = self.test_dir / "remove"
        keep.mkdir()
        remove.mkdir()
        for i in range(250):
            (keep / f"set_{i}.txt").write_text(f"CONTENT_{i}")
            (remove / f"set_{i}.txt").write_text(f"CONTENT_{i}")
        rules_file = self.test_dir / "rules.json"
        rules_file.write_text(json.dumps([{"keep": str(keep), "remove": str(remove)}]))

        start_time = time.time()
        result = subprocess.run(
            [sys.executable, "-m", "dupe_resolver.cli", str(self.test_dir), "-c", str(rules_file), "-q"],
            capture_output=True,
            text=True
        )
        elapsed = time.time() - start_time

        self.assertEqual(result.returncode, 0, result.stderr)
        self.assertIn("Would delete: 250", result.stdout)
        self.assertLess(elapsed, 10)


if __name__ == "__main__":
    unittest.main()
