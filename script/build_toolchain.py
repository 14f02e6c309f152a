#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import os
import sys
import enum
import argparse
import dataclasses
from collections.abc import Mapping
import common
import component
import builders  # 注册所有组件
from branches import check_all_branches
from strip import strip_binaries
from toolchain_environment import environment


class build_mode(enum.StrEnum):
    debug = "debug"
    release = "release"
    reldebug = "reldebug"


# {模式: (CMAKE_BUILD_TYPE, BUILD_SHARED_LIBS, LLVM_ENABLE_ASSERTIONS)}
mode_table: dict[build_mode, tuple[str, bool, bool]] = {
    build_mode.debug: ("Debug", True, True),
    build_mode.release: ("Release", False, False),
    build_mode.reldebug: ("RelWithDebInfo", False, True),
}

# 历史上llvm和ldc使用的额外选项环境变量名
legacy_option_list: dict[str, str] = {"llvm": "LLVM_EXTRA_OPTS", "ldc": "LDC_EXTRA_OPTS"}


@dataclasses.dataclass(frozen=True)
class build_config:
    """解析完成后的构建配置，在整个构建过程中保持不变"""

    home: str  # 源码树根目录
    mode: build_mode  # 构建模式
    cmake_build_type: str  # CMAKE_BUILD_TYPE
    shared_libs: bool  # 是否构建动态库
    assertions: bool  # 是否启用llvm断言
    strip: bool  # 是否剥离可执行文件的符号
    clean: bool  # 是否在构建前删除构建目录
    jobs: int  # 并发数
    dmd: str  # 构建dub所用的D编译器
    component_set: frozenset[str]  # 需要构建的组件
    extra_opts: str = ""  # EXTRA_OPTS
    component_opts: Mapping[str, str] = dataclasses.field(default_factory=dict)  # {组件名: 组件专用的额外选项}

    def enabled(self, name: str) -> bool:
        return name in self.component_set


class configure(common.basic_configure):
    mode: str  # 构建模式
    gdb: bool  # 是否构建gdb
    qemu: bool  # 是否构建qemu
    binutils: bool  # 是否构建binutils
    llvm: bool  # 是否构建llvm
    ldc: bool  # 是否构建ldc
    newlib: bool  # 是否构建newlib
    compiler_rt: bool  # 是否构建compiler-rt
    dub: bool  # 是否构建dub
    all_components: bool  # 是否构建所有组件
    strip: bool  # 是否剥离可执行文件的符号
    clean: bool  # 是否在构建前删除构建目录
    jobs: int  # 并发数，0表示自动检测

    def __init__(
        self,
        home: str = common.get_default_home(),
        mode: str = build_mode.release,
        gdb: bool = False,
        qemu: bool = False,
        binutils: bool = False,
        llvm: bool = False,
        ldc: bool = False,
        newlib: bool = False,
        compiler_rt: bool = False,
        dub: bool = False,
        all_components: bool = False,
        strip: bool = False,
        clean: bool = False,
        jobs: int = 0,
    ) -> None:
        super().__init__(home)
        self.mode = str(mode)
        self.gdb = gdb
        self.qemu = qemu
        self.binutils = binutils
        self.llvm = llvm
        self.ldc = ldc
        self.newlib = newlib
        self.compiler_rt = compiler_rt
        self.dub = dub
        self.all_components = all_components
        self.strip = strip
        self.clean = clean
        self.jobs = jobs

    def check(self) -> None:
        common._check_home(self.home)
        assert self.mode in build_mode.__members__, f"Invalid mode: {self.mode}."
        assert self.jobs >= 0, f"Invalid jobs: {self.jobs}."

    def selected_component_list(self) -> list[str]:
        """获取用户选择的组件，不含前置组件"""
        if self.all_components:
            return list(component.component_list)
        return [name for name in component.component_list if getattr(self, name.replace("-", "_"))]

    def to_build_config(self, environ: Mapping[str, str] = os.environ) -> build_config:
        """结合环境变量生成最终的构建配置

        Args:
            environ (Mapping[str, str], optional): 环境变量. 默认为当前进程的环境变量.

        Returns:
            build_config: 构建配置
        """
        mode = build_mode(self.mode)
        cmake_build_type, shared_libs, assertions = mode_table[mode]
        strip = self.strip
        if mode == build_mode.debug and strip:
            print("--strip is skipped in debug mode")
            strip = False

        selected = self.selected_component_list()
        # 未指定D编译器时使用本次构建的ldc
        dmd = environ.get("DMD", "")
        if dmd == "":
            dmd = os.path.join(common.get_install_prefix(self.home), "bin", "ldmd2")
            selected.append("ldc")

        component_opts: dict[str, str] = {}
        for item in component.component_list.values():
            option_list = [environ.get(item.option_name, "")]
            if item.name in legacy_option_list:
                option_list.insert(0, environ.get(legacy_option_list[item.name], ""))
            component_opts[item.name] = " ".join(option for option in option_list if option != "")

        return build_config(
            home=os.path.abspath(self.home),
            mode=mode,
            cmake_build_type=cmake_build_type,
            shared_libs=shared_libs,
            assertions=assertions,
            strip=strip,
            clean=self.clean,
            jobs=self.jobs or common.get_default_jobs(environ),
            dmd=dmd,
            component_set=frozenset(component.expand(selected)),
            extra_opts=environ.get("EXTRA_OPTS", ""),
            component_opts=component_opts,
        )


def build_component(env: environment, item: component.component) -> None:
    """构建单个组件，所有输出写入该组件的日志文件

    Args:
        env (environment): 构建环境
        item (component.component): 要构建的组件

    Raises:
        component.component_error: 任一步骤失败时抛出异常
    """
    log_path = env.log_path(item.name)
    print(f"Building {item.build_title}... logging to {log_path}")
    try:
        with env.open_log(item.name):
            item.build(env)
    except (RuntimeError, OSError) as e:
        raise component.component_error(item.name, log_path) from e


def build(config: build_config, runner: common.command_runner | None = None, timestamp: str | None = None) -> environment:
    """按依赖顺序构建所有启用的组件

    Args:
        config (build_config): 构建配置
        runner (common.command_runner | None, optional): 命令执行器. 默认执行真实命令.
        timestamp (str | None, optional): 日志目录名. 默认使用当前时间.

    Raises:
        component.component_error: 组件构建失败时抛出异常，之后的组件不会被构建

    Returns:
        environment: 构建环境
    """
    env = environment(config, runner, timestamp)
    if config.clean:
        print(f"Erasing {env.build_prefix}...")
        common.remove_if_exists(env.build_prefix)

    check_all_branches(env.runner, env.home, os.path.join(env.root_dir, "EXPECTED_BRANCHES"))
    common.mkdir(env.log_dir, False)

    path_registered = False
    for item in component.resolve(component.component_list):
        # 从dub开始需要使用已安装的工具
        if item.use_installed_tools and not path_registered:
            env.register_in_env()
            path_registered = True
        if config.enabled(item.name):
            build_component(env, item)
        else:
            print(f"Skipping {item.title}...")

    if config.strip:
        print("Stripping binaries...")
        strip_binaries(env.runner, env.bin_dir)
    print("Build completed successfully.")
    return env


def create_parser() -> argparse.ArgumentParser:
    """创建命令行解析器，无法识别或不完整的参数会打印帮助并以1退出"""
    default_config = configure()
    parser = common.usage_parser(
        description="Build the RISC-V LDC toolchain from checked out sources.", allow_abbrev=False, inline_option_list=("--mode",)
    )
    configure.add_argument(parser)
    parser.add_argument(
        "--clean", action="store_true", help="Erase build directory.", default=default_config.clean
    )
    parser.add_argument(
        "--mode",
        type=str,
        help="Do a debug build, a release build or a release build with debug info.",
        default=default_config.mode,
        choices=list(build_mode),
    )
    for name in component.component_list:
        parser.add_argument(
            f"--with-{name}", dest=name.replace("-", "_"), action="store_true", help=f"Build {component.component_list[name].title}."
        )
    parser.add_argument("--all", dest="all_components", action="store_true", help="Build all components.")
    parser.add_argument("--strip", action="store_true", help="Strip toolchain binaries.", default=default_config.strip)
    parser.add_argument(
        "--jobs",
        type=int,
        help="Number of concurrent jobs at build time. Use $PARALLEL_JOBS or the number of cpu cores by default.",
        default=default_config.jobs,
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    current_config = configure.parse_args(args)
    current_config.load_config(args)
    current_config.check()

    try:
        build(current_config.to_build_config())
    except component.component_error as e:
        print(e, file=sys.stderr)
        return 1

    current_config.save_config(args)
    return 0


if __name__ == "__main__":
    sys.exit(main())
