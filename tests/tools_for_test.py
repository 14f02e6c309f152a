import os
import sys
import tempfile
import unittest
from unittest import mock
from collections.abc import Callable, Mapping

here = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, os.path.join(os.path.dirname(here), "script"))

import common  # noqa: E402

checkout_list = ("gdb", "qemu", "binutils", "llvm-project", "ldc", "dub", "newlib", "toolchain")


class recording_runner(common.command_runner):
    """记录命令而不实际执行的命令执行器"""

    def __init__(
        self,
        fail_on: str | None = None,
        capture_list: Mapping[str, str] | None = None,
        on_run: Callable[[str, str | None], None] | None = None,
    ) -> None:
        self.fail_on = fail_on
        self.capture_list = dict(capture_list or {})
        self.on_run = on_run
        self.command_list: list[tuple[str, str | None]] = []
        self.env_list: list[Mapping[str, str] | None] = []
        self.query_list: list[tuple[str, str | None]] = []

    def run(self, command, cwd=None, env=None, log=None):
        self.command_list.append((command, cwd))
        self.env_list.append(env)
        if log:
            log.write(f"output of {command}\n")
        if self.on_run:
            self.on_run(command, cwd)
        if self.fail_on is not None and self.fail_on in command:
            if log:
                log.write("error: simulated failure\n")
            raise RuntimeError(f'Command "{command}" failed.')

    def capture(self, command, cwd=None):
        self.query_list.append((command, cwd))
        for key, value in self.capture_list.items():
            if key in command:
                return value
        return None

    def commands(self) -> list[str]:
        return [command for command, _ in self.command_list]

    def find(self, text: str) -> list[tuple[str, str | None]]:
        return [(command, cwd) for command, cwd in self.command_list if text in command]


class TemporaryHomeTestCase(unittest.TestCase):
    """在临时目录中建立源码树，并在测试结束后恢复环境变量和dry run状态"""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.home = os.path.realpath(self._tmp.name)
        for checkout in checkout_list:
            os.makedirs(os.path.join(self.home, checkout))
        self.install_prefix = os.path.join(self.home, "install")
        self.bin_dir = os.path.join(self.install_prefix, "bin")
        self.build_prefix = os.path.join(self.home, "build")
        environ_patch = mock.patch.dict(os.environ)
        environ_patch.start()
        self.addCleanup(environ_patch.stop)
        common.command_dry_run.set(False)
        self.addCleanup(common.command_dry_run.set, False)

    def tearDown(self):
        self._tmp.cleanup()
