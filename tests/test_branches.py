import io
import os
import contextlib
import unittest

import tools_for_test
from branches import check_all_branches, check_branch, load_expected_branches


class LoadTest(tools_for_test.TemporaryHomeTestCase):

    def test_shell_syntax(self):
        path = os.path.join(self.home, "EXPECTED_BRANCHES")
        with open(path, "w") as file:
            file.write("# comment\n\nEXPECTED_GDB=riscv-gdb\nexport EXPECTED_LLVM='release/17.x'\nEXPECTED_LDC=\"v1.33\"  # pinned\nEXPECTED_DUB=\n")
        self.assertEqual(
            {"EXPECTED_GDB": "riscv-gdb", "EXPECTED_LLVM": "release/17.x", "EXPECTED_LDC": "v1.33", "EXPECTED_DUB": ""},
            load_expected_branches(path),
        )

    def test_shipped_file(self):
        expected = load_expected_branches(os.path.join(os.path.dirname(tools_for_test.here), "EXPECTED_BRANCHES"))
        self.assertEqual(8, len(expected))


class CheckTest(tools_for_test.TemporaryHomeTestCase):

    def check(self, *args) -> tuple[bool, str]:
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            result = check_branch(*args)
        return result, output.getvalue()

    def test_expected_branch(self):
        runner = tools_for_test.recording_runner(capture_list={"git rev-parse --abbrev-ref HEAD": "main\n"})
        result, output = self.check(runner, os.path.join(self.home, "toolchain"), "toolchain", "main")
        self.assertTrue(result)
        self.assertEqual("", output)
        self.assertEqual([("git rev-parse --abbrev-ref HEAD", os.path.join(self.home, "toolchain"))], runner.query_list)
        self.assertEqual([], runner.command_list)

    def test_mismatch(self):
        runner = tools_for_test.recording_runner(capture_list={"git rev-parse": "wip\n"})
        result, output = self.check(runner, os.path.join(self.home, "newlib"), "newlib", "master")
        self.assertFalse(result)
        self.assertEqual("newlib branch not as expected? Expected 'master', found 'wip'\n", output)

    def test_missing_checkout(self):
        result, output = self.check(tools_for_test.recording_runner(), os.path.join(self.home, "missing"), "missing", "main")
        self.assertFalse(result)
        self.assertIn("missing branch not as expected?", output)

    def test_all(self):
        path = os.path.join(self.home, "EXPECTED_BRANCHES")
        with open(path, "w") as file:
            file.write("EXPECTED_GDB=main\nEXPECTED_LLVM=main\n")
        runner = tools_for_test.recording_runner(capture_list={"git": "main"})
        with contextlib.redirect_stdout(io.StringIO()):
            mismatch_list = check_all_branches(runner, self.home, path)
        self.assertEqual(["qemu", "binutils", "ldc", "dub", "newlib", "toolchain"], mismatch_list)
        self.assertEqual(8, len(runner.query_list))

    def test_missing_expected_file(self):
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            self.assertEqual([], check_all_branches(tools_for_test.recording_runner(), self.home, os.path.join(self.home, "none")))
        self.assertIn("skip branch check", output.getvalue())


if __name__ == "__main__":
    unittest.main()
