class multilib_variant:
    """clang -print-multi-lib输出中的一个multilib变体

    每行的格式为"<目录>;@<选项>@<选项>..."，默认变体为".;"
    """

    directory: str  # 相对于运行库根目录的安装目录
    flag_list: list[str]  # 编译选项，不含前导的"-"

    def __init__(self, directory: str, flag_list: list[str]) -> None:
        self.directory = directory
        self.flag_list = flag_list

    @staticmethod
    def parse(line: str) -> "multilib_variant":
        """解析一行multilib描述

        Args:
            line (str): 形如"rv32imac/ilp32;@march=rv32imac@mabi=ilp32"的描述

        Returns:
            multilib_variant: 解析结果
        """
        directory, sep, flags = line.strip().partition(";")
        assert sep and directory, f'Illegal multilib "{line}"'
        assert flags == "" or flags.startswith("@"), f'Illegal multilib flags "{flags}"'
        return multilib_variant(directory, [flag for flag in flags.split("@") if flag])

    @property
    def option(self) -> str:
        """传给编译器的选项，如"-march=rv32imac -mabi=ilp32" """
        return " ".join(f"-{flag}" for flag in self.flag_list)

    @property
    def build_suffix(self) -> str:
        """构建目录后缀，如"_march=rv32imac_mabi=ilp32"，默认变体为空"""
        return "".join(f"_{flag}" for flag in self.flag_list)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, multilib_variant):
            return NotImplemented
        return self.directory == other.directory and self.flag_list == other.flag_list

    def __repr__(self) -> str:
        return f"multilib_variant({self.directory!r}, {self.flag_list!r})"


def parse_multilib_list(output: str | None) -> list[multilib_variant]:
    """解析clang -print-multi-lib的完整输出

    Args:
        output (str | None): 命令输出，None表示查询失败

    Returns:
        list[multilib_variant]: 按输出顺序排列的multilib变体
    """
    if not output:
        return []
    return [multilib_variant.parse(line) for line in output.split() if line]


assert __name__ != "__main__", "Import this file instead of running it directly."
