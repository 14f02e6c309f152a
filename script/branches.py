import os
import shlex
from common import command_runner

# 需要检查分支的源代码目录及其在EXPECTED_BRANCHES文件中的变量名
checkout_list: dict[str, str] = {
    "gdb": "EXPECTED_GDB",
    "qemu": "EXPECTED_QEMU",
    "binutils": "EXPECTED_BINUTILS",
    "llvm-project": "EXPECTED_LLVM",
    "ldc": "EXPECTED_LDC",
    "dub": "EXPECTED_DUB",
    "newlib": "EXPECTED_NEWLIB",
    "toolchain": "EXPECTED_TOOLCHAIN",
}


def load_expected_branches(path: str) -> dict[str, str]:
    """读取EXPECTED_BRANCHES文件，文件使用shell变量赋值的格式

    Args:
        path (str): 文件路径

    Returns:
        dict[str, str]: {变量名: 期望的分支名}
    """
    expected: dict[str, str] = {}
    with open(path) as file:
        for line in file:
            line = line.strip()
            if line == "" or line.startswith("#"):
                continue
            key, sep, value = line.removeprefix("export ").partition("=")
            assert sep, f'Illegal line in "{path}": {line}'
            value_list = shlex.split(value, comments=True)
            expected[key.strip()] = value_list[0] if value_list else ""
    return expected


def check_branch(runner: command_runner, checkout_dir: str, name: str, expected: str) -> bool:
    """检查源代码目录当前所在分支，不一致时打印警告

    Args:
        runner (command_runner): 命令执行器
        checkout_dir (str): 源代码目录
        name (str): 用于提示的目录名
        expected (str): 期望的分支名

    Returns:
        bool: 分支是否符合预期
    """
    if not os.path.isdir(checkout_dir):
        print(f"{name} branch not as expected? Cannot find checkout {checkout_dir}")
        return False
    output = runner.capture("git rev-parse --abbrev-ref HEAD", cwd=checkout_dir)
    current = output.strip() if output is not None else ""
    if current != expected:
        print(f"{name} branch not as expected? Expected '{expected}', found '{current}'")
        return False
    return True


def check_all_branches(runner: command_runner, home: str, expected_file: str) -> list[str]:
    """检查所有源代码目录的分支，分支不一致不会中止构建

    Args:
        runner (command_runner): 命令执行器
        home (str): 源码树根目录
        expected_file (str): EXPECTED_BRANCHES文件路径

    Returns:
        list[str]: 分支不符合预期的目录列表
    """
    if not os.path.exists(expected_file):
        print(f'[toolchain] Cannot find "{expected_file}", skip branch check.')
        return []
    expected = load_expected_branches(expected_file)
    mismatch_list: list[str] = []
    for name, key in checkout_list.items():
        if not check_branch(runner, os.path.join(home, name), name, expected.get(key, "")):
            mismatch_list.append(name)
    return mismatch_list


assert __name__ != "__main__", "Import this file instead of running it directly."
