import os
import stat
import struct
import enum
import common

_elf_magic = b"\x7fELF"
_elf_class_64 = 2
_elf_machine_x86_64 = 62
_pe_magic = b"PE\0\0"
_pe_machine_x86_64 = 0x8664
_pe_optional_magic_64 = 0x20B


class binary_format(enum.StrEnum):
    """可以被剥离符号的可执行文件格式"""

    elf64_x86_64 = "ELF 64-bit x86-64"
    pe32plus_x86_64 = "PE32+ x86-64"


def _check_elf(header: bytes) -> binary_format | None:
    if len(header) < 20 or header[4] != _elf_class_64:
        return None
    byte_order = "<" if header[5] == 1 else ">"
    (machine,) = struct.unpack_from(f"{byte_order}H", header, 18)
    return binary_format.elf64_x86_64 if machine == _elf_machine_x86_64 else None


def _check_pe(file) -> binary_format | None:
    file.seek(0x3C)
    data = file.read(4)
    if len(data) < 4:
        return None
    (pe_offset,) = struct.unpack("<I", data)
    file.seek(pe_offset)
    # PE签名(4) + COFF文件头(20) + 可选文件头magic(2)
    header = file.read(26)
    if len(header) < 26 or header[:4] != _pe_magic:
        return None
    (machine,) = struct.unpack_from("<H", header, 4)
    (optional_magic,) = struct.unpack_from("<H", header, 24)
    if machine == _pe_machine_x86_64 and optional_magic == _pe_optional_magic_64:
        return binary_format.pe32plus_x86_64
    return None


def get_binary_format(path: str) -> binary_format | None:
    """识别可执行文件格式

    Args:
        path (str): 文件路径

    Returns:
        binary_format | None: 可识别的格式，其他格式返回None
    """
    with open(path, "rb") as file:
        header = file.read(64)
        if header.startswith(_elf_magic):
            return _check_elf(header)
        if header.startswith(b"MZ"):
            return _check_pe(file)
    return None


def is_executable(path: str) -> bool:
    """是否是可执行的普通文件，软链接不计入"""
    mode = os.lstat(path).st_mode
    return stat.S_ISREG(mode) and os.access(path, os.X_OK)


def strip_binaries(runner: common.command_runner, bin_dir: str) -> list[str]:
    """剥离目录下所有可识别格式的可执行文件的符号，单个文件剥离失败时打印提示并继续

    Args:
        runner (common.command_runner): 命令执行器
        bin_dir (str): 可执行文件所在目录

    Returns:
        list[str]: 成功剥离符号的文件列表
    """
    stripped_list: list[str] = []
    for root, _, file_list in os.walk(bin_dir):
        for file in sorted(file_list):
            path = os.path.join(root, file)
            if not is_executable(path):
                continue
            if get_binary_format(path) is None:
                continue
            try:
                runner.run(f"strip {path}")
            except RuntimeError:
                # 剥离失败不影响构建结果
                print(f'[toolchain] Strip "{path}" failed, but it is ignored.')
                continue
            stripped_list.append(path)
    return stripped_list


assert __name__ != "__main__", "Import this file instead of running it directly."
