import io
import contextlib
import os
import struct
import unittest

import tools_for_test
from strip import binary_format, get_binary_format, strip_binaries


def elf_header(elf_class: int, machine: int) -> bytes:
    header = bytearray(64)
    header[:4] = b"\x7fELF"
    header[4] = elf_class
    header[5] = 1
    struct.pack_into("<H", header, 18, machine)
    return bytes(header)


def pe_header(machine: int, optional_magic: int) -> bytes:
    header = bytearray(0x80 + 26)
    header[:2] = b"MZ"
    struct.pack_into("<I", header, 0x3C, 0x80)
    header[0x80:0x84] = b"PE\0\0"
    struct.pack_into("<H", header, 0x84, machine)
    struct.pack_into("<H", header, 0x80 + 24, optional_magic)
    return bytes(header)


class StripTest(tools_for_test.TemporaryHomeTestCase):

    def setUp(self):
        super().setUp()
        os.makedirs(self.bin_dir)

    def write(self, name: str, content: bytes, executable: bool = True) -> str:
        path = os.path.join(self.bin_dir, name)
        with open(path, "wb") as file:
            file.write(content)
        os.chmod(path, 0o755 if executable else 0o644)
        return path

    def test_binary_format(self):
        self.assertEqual(binary_format.elf64_x86_64, get_binary_format(self.write("clang", elf_header(2, 62))))
        self.assertEqual(binary_format.pe32plus_x86_64, get_binary_format(self.write("clang.exe", pe_header(0x8664, 0x20B))))
        self.assertIsNone(get_binary_format(self.write("rv32", elf_header(1, 243))))
        self.assertIsNone(get_binary_format(self.write("pe32", pe_header(0x14C, 0x10B))))
        self.assertIsNone(get_binary_format(self.write("ldc-build-plugin", b"#!/bin/sh\nexit 0\n")))

    def test_strip_binaries(self):
        clang = self.write("clang", elf_header(2, 62))
        gdb = self.write("gdb.exe", pe_header(0x8664, 0x20B))
        self.write("libLLVM.so.data", elf_header(2, 62), executable=False)
        self.write("ldc-profdata-wrapper", b"#!/bin/sh\n")
        self.write("crt0.o", elf_header(1, 243))
        os.symlink("clang", os.path.join(self.bin_dir, "cc"))

        runner = tools_for_test.recording_runner()
        self.assertEqual([clang, gdb], strip_binaries(runner, self.bin_dir))
        self.assertEqual([f"strip {clang}", f"strip {gdb}"], runner.commands())

    def test_failed_strip_is_ignored(self):
        clang = self.write("clang", elf_header(2, 62))
        gdb = self.write("gdb", elf_header(2, 62))

        runner = tools_for_test.recording_runner(fail_on=f"strip {clang}")
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            self.assertEqual([gdb], strip_binaries(runner, self.bin_dir))
        self.assertEqual([f"strip {clang}", f"strip {gdb}"], runner.commands())
        self.assertIn(f'[toolchain] Strip "{clang}" failed, but it is ignored.', output.getvalue())


if __name__ == "__main__":
    unittest.main()
