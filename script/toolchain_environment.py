import os
import contextlib
import typing
from collections.abc import Iterator, Mapping
import common

if typing.TYPE_CHECKING:
    from build_toolchain import build_config

target = "riscv32-unknown-elf"  # 工具链目标平台


def get_cmake_option(**kwargs) -> list[str]:
    """将字典转化为cmake选项列表

    Returns:
        list[str]: cmake选项列表
    """
    option_list: list[str] = []
    for key, value in kwargs.items():
        option_list.append(f"-D{key}={value}")
    return option_list


def on_off(value: bool) -> str:
    return "ON" if value else "OFF"


class environment(common.basic_environment):
    config: "build_config"  # 本次构建的配置，构建过程中不会被修改
    runner: common.command_runner  # 外部命令执行器
    target: str  # 目标平台
    target_arch: str  # 目标平台的架构名
    log: typing.TextIO | None  # 当前组件的日志文件

    def __init__(self, config: "build_config", runner: common.command_runner | None = None, timestamp: str | None = None) -> None:
        super().__init__(config.home, config.jobs, timestamp)
        self.config = config
        self.runner = runner or common.command_runner()
        self.target = target
        self.target_arch = target.split("-")[0]
        self.log = None

    def source_dir(self, *path: str) -> str:
        """获取源代码路径

        Args:
            path (str): 相对于源码树根目录的路径
        """
        return os.path.join(self.home, *path)

    def build_dir(self, name: str) -> str:
        """获取组件的构建目录"""
        return os.path.join(self.build_prefix, name)

    def log_path(self, name: str) -> str:
        """获取组件的日志文件路径"""
        return os.path.join(self.log_dir, f"{name}.log")

    def installed_tool(self, tool: str) -> str:
        """获取已安装工具的路径"""
        return os.path.join(self.bin_dir, tool)

    @contextlib.contextmanager
    def open_log(self, name: str) -> Iterator[typing.TextIO | None]:
        """打开组件日志文件，退出时关闭，dry run模式下不创建日志

        Args:
            name (str): 组件名
        """
        if common.command_dry_run.get():
            yield None
            return
        os.makedirs(self.log_dir, exist_ok=True)
        with open(self.log_path(name), "w") as log:
            self.log = log
            try:
                yield log
            finally:
                self.log = None

    def write_log(self, message: str) -> None:
        """向当前日志写入一行信息"""
        if self.log:
            self.log.write(f"{message}\n")
            self.log.flush()

    def extra_options(self, name: str, generic: bool = True) -> list[str]:
        """获取用户通过环境变量提供的额外配置选项

        Args:
            name (str): 组件名
            generic (bool, optional): 是否包含EXTRA_OPTS中的通用选项，cmake项目不使用通用选项. 默认包含.

        Returns:
            list[str]: 额外配置选项
        """
        option_list = [self.config.extra_opts] if generic else []
        option_list.append(self.config.component_opts.get(name, ""))
        return [option for option in option_list if option != ""]

    def enter_build_dir(self, name: str, remove_files: bool = False) -> str:
        """创建构建目录

        Args:
            name (str): 构建目录名
            remove_files (bool, optional): 是否删除已存在的构建目录. 默认保留.

        Returns:
            str: 构建目录
        """
        build_dir = self.build_dir(name)
        common.mkdir(build_dir, remove_files)
        return build_dir

    def run(self, command: str, cwd: str, env: Mapping[str, str] | None = None) -> None:
        """在构建目录中运行命令，输出写入当前日志"""
        self.runner.run(command, cwd=cwd, env=env, log=self.log)

    def configure(self, build_dir: str, source: str, *option: str, env: Mapping[str, str] | None = None) -> None:
        """对autotools项目进行配置

        Args:
            build_dir (str): 构建目录
            source (str): 源代码目录，相对于源码树根目录
            option (tuple[str, ...]): 配置选项
            env (Mapping[str, str] | None, optional): configure所需的环境变量. 默认继承当前进程.
        """
        options = " ".join(("", *option))
        self.run(f"{os.path.join(self.source_dir(source), 'configure')}{options}", build_dir, env)

    def cmake(self, build_dir: str, source: str, generator: str, *option: str, **cmake_option: str) -> None:
        """对cmake项目进行配置

        Args:
            build_dir (str): 构建目录
            source (str): 源代码目录，相对于源码树根目录
            generator (str): cmake生成器
            option (tuple[str, ...]): 附加配置选项，位于cmake选项之后
            cmake_option (dict[str, str]): cmake变量
        """
        command_list = [f'cmake -G "{generator}"', *get_cmake_option(**cmake_option), *option, self.source_dir(source)]
        self.run(" ".join(command_list), build_dir)

    def make(self, build_dir: str, *target: str) -> None:
        """并行编译make项目

        Args:
            build_dir (str): 构建目录
            target (tuple[str, ...]): 要编译的目标
        """
        targets = " ".join(("", *target))
        self.run(f"make -j{self.jobs}{targets}", build_dir)

    def install(self, build_dir: str, target: str = "install") -> None:
        """安装make项目

        Args:
            build_dir (str): 构建目录
            target (str, optional): 安装目标. 默认为install.
        """
        self.run(f"make {target}", build_dir)

    def cmake_build(self, build_dir: str, target: str = "all") -> None:
        """使用cmake编译项目"""
        self.run(f"cmake --build . -j{self.jobs} --target {target}", build_dir)

    def cmake_install(self, build_dir: str) -> None:
        """使用cmake安装项目"""
        self.run("cmake --build . --target install", build_dir)

    def get_resource_dir(self) -> str:
        """查询已安装clang的资源目录

        Raises:
            RuntimeError: 查询失败时抛出异常

        Returns:
            str: 资源目录
        """
        output = self.runner.capture(f"{self.installed_tool('clang')} -print-resource-dir")
        if output is None or output.strip() == "":
            if common.command_dry_run.get():
                return os.path.join(self.install_prefix, "lib", "clang", "unknown")
            raise RuntimeError("Cannot get the resource dir of clang.")
        return output.strip()


assert __name__ != "__main__", "Import this file instead of running it directly."
