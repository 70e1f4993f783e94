"""
Test suite for the command-line driver.

Tests cover:
- Command scripts from files and stdin
- JSON output of stats and gc
- Exit codes and error messages
"""

import io
import json
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import mock

# Add the project root to the Python path
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
sys.path.insert(0, project_root)

from ledger.cli import CommandError, CommandRunner, main
from ledger.ledger_core import Ledger


class TestCommandRunner(unittest.TestCase):
    """Test cases for individual commands."""

    def setUp(self):
        self.out = io.StringIO()
        self.runner = CommandRunner(Ledger(), self.out)

    def _lines(self):
        return self.out.getvalue().splitlines()

    def test_alloc_prints_ids(self):
        self.runner.run_line("alloc 10 root")
        self.runner.run_line("alloc 20")
        self.assertEqual(self._lines(), ["1", "2"])

    def test_stats_and_gc_output(self):
        for line in ("alloc 10 root", "alloc 10", "gc", "stats"):
            self.runner.run_line(line)

        lines = self._lines()
        self.assertEqual(json.loads(lines[2]), {'objectsFreed': 1, 'bytesFreed': 32})
        self.assertEqual(json.loads(lines[3]),
                         {'allocated': 32, 'live': 32, 'classCounts': {'32': 1}})

    def test_ref_and_root(self):
        for line in ("alloc 10 root", "alloc 10", "ref 1 2", "root 1 false", "gc"):
            self.runner.run_line(line)
        self.assertEqual(json.loads(self._lines()[-1]), {'objectsFreed': 2, 'bytesFreed': 64})

    def test_ref_with_no_targets_clears_edges(self):
        for line in ("alloc 10 root", "alloc 10", "ref 1 2", "ref 1", "gc"):
            self.runner.run_line(line)
        self.assertEqual(json.loads(self._lines()[-1])['objectsFreed'], 1)

    def test_comments_and_blank_lines(self):
        self.runner.run_line("")
        self.runner.run_line("# nothing here")
        self.runner.run_line("alloc 8  # trailing comment")
        self.assertEqual(self._lines(), ["1"])

    def test_malformed_commands(self):
        for line in ("frob", "alloc", "alloc ten", "alloc 10 leaf", "root 1",
                     "root 1 maybe", "stats now", "gc 1", 'alloc "10'):
            with self.assertRaises(CommandError, msg=line):
                self.runner.run_line(line)


class TestMain(unittest.TestCase):
    """Test cases for main() and exit codes."""

    def _write_script(self, text):
        handle = tempfile.NamedTemporaryFile('w', suffix='.txt', delete=False, encoding='utf-8')
        with handle:
            handle.write(text)
        self.addCleanup(os.unlink, handle.name)
        return handle.name

    def _run(self, argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_successful_script(self):
        script = self._write_script("alloc 10 root\nalloc 10\ngc\nstats\n")
        code, out, err = self._run([script])
        self.assertEqual(code, 0)
        lines = out.splitlines()
        self.assertEqual(lines[:2], ["1", "2"])
        self.assertEqual(json.loads(lines[3])['live'], 32)

    def test_reads_stdin(self):
        out, err = io.StringIO(), io.StringIO()
        with mock.patch('sys.stdin', io.StringIO("alloc 64 root\nstats\n")):
            with redirect_stdout(out), redirect_stderr(err):
                code = main([])
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out.getvalue().splitlines()[1])['live'], 128)

    def test_unknown_object_exits_nonzero(self):
        script = self._write_script("alloc 10\nref 1 99\nstats\n")
        code, out, err = self._run([script])
        self.assertEqual(code, 1)
        self.assertIn("unknown object", err)
        self.assertIn("line 2", err)
        self.assertEqual(out.splitlines(), ["1"])

    def test_invalid_size_exits_nonzero(self):
        script = self._write_script("alloc -5\n")
        code, out, err = self._run([script])
        self.assertEqual(code, 1)
        self.assertIn("invalid payload size", err)

    def test_size_class_options(self):
        script = self._write_script("alloc 1 root\nstats\n")
        code, out, err = self._run(['--size-classes', '64,256', '--header', '0', script])
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out.splitlines()[1])['classCounts'], {'64': 1})

    def test_config_file(self):
        config = self._write_script(json.dumps({'size_classes': [128], 'header_overhead': 0}))
        script = self._write_script("alloc 1 root\nstats\n")
        code, out, err = self._run(['--config', config, script])
        self.assertEqual(code, 0)
        self.assertEqual(json.loads(out.splitlines()[1])['allocated'], 128)

    def test_bad_configuration(self):
        script = self._write_script("stats\n")
        code, out, err = self._run(['--size-classes', '64,16', script])
        self.assertEqual(code, 1)
        self.assertIn("ascending", err)

    def test_missing_script(self):
        code, out, err = self._run([os.path.join(tempfile.gettempdir(), 'no-such-ledger-script')])
        self.assertEqual(code, 1)
        self.assertIn("error", err)

    def test_usage_error(self):
        with redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                main(['--header', 'many'])
        self.assertEqual(ctx.exception.code, 2)


if __name__ == '__main__':
    unittest.main()
