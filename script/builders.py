import os
import common
from component import register
from multilib import parse_multilib_list
from toolchain_environment import environment, on_off

# 以目标平台为前缀的工具软链接，{后缀: 指向的llvm工具}
tool_symlink_list: dict[str, str] = {
    "clang": "clang",
    "clang++": "clang",
    "cc": "clang",
    "c++": "clang",
    "as": "clang",
    "ar": "llvm-ar",
    "ranlib": "llvm-ranlib",
    "strip": "llvm-objcopy",
    "readelf": "llvm-readobj",
}

# newlib的体积优化选项
newlib_option = (
    "--enable-multilib",
    "--enable-newlib-global-atexit",
    "--disable-newlib-fvwrite-in-streamio",
    "--disable-newlib-fseek-optimization",
    "--enable-newlib-nano-malloc",
    "--disable-newlib-unbuf-stream-opt",
    "--enable-newlib-reent-small",
    "--disable-newlib-wide-orient",
    "--disable-newlib-io-float",
    "--enable-newlib-nano-formatted-io",
    "--enable-newlib-io-c99-formats",
    "--enable-lite-exit",
    "--disable-newlib-multithread",
)
newlib_target_cflags = "-DPREFER_SIZE_OVER_SPEED=1 -Os"


@register("gdb", "gdb")
def build_gdb(env: environment) -> None:
    build_dir = env.enter_build_dir("gdb")
    env.configure(
        build_dir,
        "gdb",
        f"--target={env.target}",
        f"--prefix={env.install_prefix}",
        "--without-gnu-as",
        "--disable-werror",
        "--disable-gprof",
        "--disable-ld",
        "--disable-gas",
        "--disable-binutils",
        *env.extra_options("gdb"),
    )
    env.make(build_dir)
    env.install(build_dir)


@register("qemu", "qemu")
def build_qemu(env: environment) -> None:
    build_dir = env.enter_build_dir("qemu")
    env.configure(
        build_dir,
        "qemu",
        f"--target-list={env.target_arch}-linux-user",
        f"--prefix={env.install_prefix}",
        *env.extra_options("qemu"),
    )
    env.make(build_dir, "all")
    env.install(build_dir)


@register("binutils", "binutils")
def build_binutils(env: environment) -> None:
    """只构建链接器，汇编器由clang提供"""
    build_dir = env.enter_build_dir("binutils")
    env.configure(
        build_dir,
        "binutils",
        f"--target={env.target}",
        f"--prefix={env.install_prefix}",
        "--without-gnu-as",
        "--disable-werror",
        "--disable-gdb",
        "--disable-libdecnumber",
        "--disable-readline",
        "--disable-sim",
        *env.extra_options("binutils"),
    )
    env.make(build_dir, "all-ld")
    env.install(build_dir, "install-ld")


def create_tool_symlink(env: environment) -> None:
    """在安装目录中创建以目标平台为前缀的llvm工具软链接"""
    for suffix, tool in tool_symlink_list.items():
        common.symlink(tool, env.installed_tool(f"{env.target}-{suffix}"))


@register("llvm", "llvm-project", ("binutils",))
def build_llvm(env: environment) -> None:
    config = env.config
    build_dir = env.enter_build_dir("llvm")
    env.cmake(
        build_dir,
        os.path.join("llvm-project", "llvm"),
        "Ninja",
        *env.extra_options("llvm", False),
        CMAKE_BUILD_TYPE=config.cmake_build_type,
        BUILD_SHARED_LIBS=on_off(config.shared_libs),
        CMAKE_INSTALL_PREFIX=env.install_prefix,
        LLVM_ENABLE_ASSERTIONS=on_off(config.assertions),
        LLVM_ENABLE_PROJECTS="clang",
        LLVM_ENABLE_PLUGINS="ON",
        LLVM_BINUTILS_INCDIR=env.source_dir("binutils", "include"),  # 用于构建LLVMgold插件
        LLVM_PARALLEL_LINK_JOBS="5",
        LLVM_TARGETS_TO_BUILD='"X86;RISCV"',
    )
    env.cmake_build(build_dir)
    env.cmake_install(build_dir)
    create_tool_symlink(env)


@register("ldc", "ldc", ("llvm",))
def build_ldc(env: environment) -> None:
    config = env.config
    build_dir = env.enter_build_dir("ldc")
    env.cmake(
        build_dir,
        "ldc",
        "Ninja",
        *env.extra_options("ldc", False),
        CMAKE_BUILD_TYPE=config.cmake_build_type,
        BUILD_SHARED_LIBS=on_off(config.shared_libs),
        CMAKE_INSTALL_PREFIX=env.install_prefix,
        LLVM_ROOT_DIR=env.install_prefix,
    )
    env.cmake_build(build_dir)
    env.cmake_install(build_dir)


@register("dub", "dub", use_installed_tools=True)
def build_dub(env: environment) -> None:
    """dub使用D语言编写的build.d自举，需要先将源代码复制到构建目录"""
    build_dir = env.build_dir("dub")
    common.remove_if_exists(build_dir)
    common.copy(env.source_dir("dub"), build_dir)
    env.run(f"{env.config.dmd} --run build.d", build_dir)
    dub_bin_dir = os.path.join(build_dir, "bin")
    if common.command_dry_run.get():
        print(f"[toolchain] Copy {dub_bin_dir}/* -> {env.bin_dir}.")
        return
    if not os.path.isdir(dub_bin_dir):
        env.write_log(f"Cannot find {dub_bin_dir}.")
        raise RuntimeError(f"Cannot find {dub_bin_dir}.")
    for file in os.listdir(dub_bin_dir):
        common.copy(os.path.join(dub_bin_dir, file), env.installed_tool(file))


@register("newlib", "newlib", ("llvm",), True)
def build_newlib(env: environment) -> None:
    build_dir = env.enter_build_dir("newlib32")
    env.configure(
        build_dir,
        "newlib",
        f"--target={env.target}",
        f"--prefix={env.install_prefix}",
        *newlib_option,
        *env.extra_options("newlib"),
        env={**os.environ, "CFLAGS_FOR_TARGET": newlib_target_cflags},
    )
    env.make(build_dir)
    env.install(build_dir)


def remove_arch_suffix(runtime_dir: str, arch: str) -> list[str]:
    """将compiler-rt产物名中的架构后缀去掉，如libclang_rt.builtins-riscv32.a -> libclang_rt.builtins.a

    Args:
        runtime_dir (str): compiler-rt安装目录
        arch (str): 架构名

    Returns:
        list[str]: 重命名后的文件列表
    """
    renamed_list: list[str] = []
    for root, _, file_list in os.walk(runtime_dir):
        for file in sorted(file_list):
            for ext in (".a", ".o"):
                suffix = f"-{arch}{ext}"
                if file.endswith(suffix):
                    dst = os.path.join(root, file.removesuffix(suffix) + ext)
                    common.rename(os.path.join(root, file), dst)
                    renamed_list.append(dst)
    return renamed_list


@register("compiler-rt", "llvm-project", ("llvm",), True)
def build_compiler_rt(env: environment) -> None:
    """为clang报告的每个multilib分别构建compiler-rt的builtins

    CMAKE_SYSTEM_NAME设置为Linux，使cmake能够正确检查交叉编译用的clang
    """
    clang = os.path.join(env.build_dir("llvm"), "bin", "clang")
    variant_list = parse_multilib_list(env.runner.capture(f"{clang} -target {env.target} -print-multi-lib"))
    if variant_list == [] and not common.command_dry_run.get():
        env.write_log(f"Cannot get multilib list from {clang}.")
        raise RuntimeError(f"Cannot get multilib list from {clang}.")
    runtime_dir = os.path.join(env.get_resource_dir(), env.target)
    for variant in variant_list:
        message = f'Multilib: "{variant.directory}" -> "{variant.option}"'
        print(message)
        env.write_log(message)
        build_dir = env.enter_build_dir(f"compiler-rt{variant.build_suffix}")
        env.cmake(
            build_dir,
            os.path.join("llvm-project", "compiler-rt"),
            "Unix Makefiles",
            *env.extra_options("compiler-rt", False),
            CMAKE_SYSTEM_NAME="Linux",
            CMAKE_INSTALL_PREFIX=os.path.normpath(os.path.join(runtime_dir, variant.directory)),
            CMAKE_C_COMPILER=env.installed_tool("clang"),
            CMAKE_AR=env.installed_tool("llvm-ar"),
            CMAKE_NM=env.installed_tool("llvm-nm"),
            CMAKE_RANLIB=env.installed_tool("llvm-ranlib"),
            CMAKE_OBJDUMP=env.installed_tool("llvm-objdump"),
            CMAKE_C_COMPILER_TARGET=env.target,
            CMAKE_ASM_COMPILER_TARGET=env.target,
            CMAKE_C_FLAGS=f'"{" ".join(filter(None, (variant.option, "-Oz -mno-save-restore -g3")))}"',
            CMAKE_ASM_FLAGS=f'"{" ".join(filter(None, (variant.option, "-Oz -mno-save-restore")))}"',
            CMAKE_EXE_LINKER_FLAGS='"-nostartfiles -nostdlib"',
            COMPILER_RT_BAREMETAL_BUILD="ON",
            COMPILER_RT_BUILD_BUILTINS="ON",
            COMPILER_RT_BUILD_LIBFUZZER="OFF",
            COMPILER_RT_BUILD_PROFILE="OFF",
            COMPILER_RT_BUILD_SANITIZERS="OFF",
            COMPILER_RT_BUILD_XRAY="OFF",
            COMPILER_RT_DEFAULT_TARGET_ONLY="ON",
            COMPILER_RT_OS_DIR="..",
            LLVM_CONFIG_PATH=os.path.join(env.build_dir("llvm"), "bin", "llvm-config"),
        )
        env.make(build_dir)
        env.install(build_dir)
    # 新版本clang查找不带架构后缀的运行库
    remove_arch_suffix(runtime_dir, env.target_arch)


assert __name__ != "__main__", "Import this file instead of running it directly."
