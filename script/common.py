import functools
import os
import sys
import time
import psutil
import shutil
import json
import argparse
import inspect
import itertools
import subprocess
import typing
from collections.abc import Callable, Iterable, Mapping


class command_dry_run:
    """是否只显示命令而不实际执行"""

    _dry_run: bool = False

    @classmethod
    def get(cls) -> bool:
        return cls._dry_run

    @classmethod
    def set(cls, dry_run: bool) -> None:
        cls._dry_run = dry_run


P = typing.ParamSpec("P")
R = typing.TypeVar("R")


def _support_dry_run(echo_fn: Callable[..., str | None] | None = None) -> Callable[[Callable[P, R]], Callable[P, R | None]]:
    """根据dry_run参数和command_dry_run中的全局状态确定是否只回显命令而不执行，若fn没有dry_run参数则只会使用全局状态

    Args:
        echo_fn (Callable[..., str | None] | None, optional): 回调函数，返回要显示的命令字符串或None，无回调或返回None时不显示命令，所有参数需要能在主函数的参数列表中找到，默认为无回调.
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R | None]:
        signature = inspect.signature(fn)

        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R | None:
            bound_args = signature.bind(*args, **kwargs)
            bound_args.apply_defaults()
            if echo_fn:
                param_list: list = []
                for key in inspect.signature(echo_fn).parameters.keys():
                    assert (
                        key in bound_args.arguments
                    ), f"The param {key} of echo_fn is not in the param list of fn. Every param of echo_fn should be able to find in the param list of fn."
                    param_list.append(bound_args.arguments[key])
                echo = echo_fn(*param_list)
                if echo is not None:
                    print(echo)
            dry_run: bool | None = bound_args.arguments.get("dry_run")
            assert isinstance(dry_run, bool | None), f"The param dry_run must be a bool or None."
            if dry_run is None and command_dry_run.get() or dry_run:
                return
            return fn(*bound_args.args, **bound_args.kwargs)

        return wrapper

    return decorator


@_support_dry_run(lambda command, echo: f"[toolchain] Run command: {command}" if echo else None)
def run_command(
    command: str,
    ignore_error: bool = False,
    capture: bool = False,
    echo: bool = True,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    log: typing.TextIO | None = None,
    dry_run: bool | None = None,
) -> subprocess.CompletedProcess[str] | None:
    """运行指定命令, 若不忽略错误, 则在命令执行出错时抛出RuntimeError, 反之打印错误码

    Args:
        command (str): 要运行的命令
        ignore_error (bool, optional): 是否忽略错误. 默认不忽略错误.
        capture (bool, optional): 是否捕获命令输出，默认为不捕获.
        echo (bool, optional): 是否回显信息，设置为False将不回显任何信息，包括错误提示，默认为回显.
        cwd (str | None, optional): 命令的工作目录，默认为当前目录.
        env (Mapping[str, str] | None, optional): 命令的环境变量，默认继承当前进程.
        log (typing.TextIO | None, optional): 日志文件，设置后标准输出和标准错误均写入该文件. 默认不写入日志.
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.

    Raises:
        RuntimeError: 命令执行失败且ignore_error为False时抛出异常

    Returns:
        None | subprocess.CompletedProcess[str]: 在命令正常执行结束后返回执行结果，否则返回None
    """

    if capture:
        stdout = stderr = subprocess.PIPE  # capture为True，不论是否回显都需要捕获输出
    elif log:
        log.write(f"[toolchain] Run command: {command}\n")
        log.flush()  # 先写出已缓冲的内容，保证日志顺序
        stdout, stderr = log, subprocess.STDOUT
    elif echo:
        stdout = stderr = None  # 回显而不捕获输出则正常输出
    else:
        stdout = stderr = subprocess.DEVNULL  # 不回显又不捕获输出则丢弃输出
    try:
        result = subprocess.run(
            command, stdout=stdout, stderr=stderr, shell=True, check=True, text=True, cwd=cwd, env=None if env is None else dict(env)
        )
    except (subprocess.CalledProcessError, OSError) as e:
        if not ignore_error:
            raise RuntimeError(f'Command "{command}" failed.') from e
        if echo:
            print(f'[toolchain] Command "{command}" failed with errno={getattr(e, "returncode", e.errno)}, but it is ignored.')
        return None
    return result


class command_runner:
    """外部命令执行器，所有构建步骤均通过该对象调用外部工具，测试时可以替换为记录命令的实现"""

    def run(self, command: str, cwd: str | None = None, env: Mapping[str, str] | None = None, log: typing.TextIO | None = None) -> None:
        """运行命令，失败时抛出RuntimeError

        Args:
            command (str): 要运行的命令
            cwd (str | None, optional): 工作目录. 默认为当前目录.
            env (Mapping[str, str] | None, optional): 环境变量. 默认继承当前进程.
            log (typing.TextIO | None, optional): 输出写入的日志文件. 默认直接输出.
        """
        run_command(command, cwd=cwd, env=env, log=log)

    def capture(self, command: str, cwd: str | None = None) -> str | None:
        """运行只读查询命令并返回标准输出，即使在dry run模式下也会执行

        Args:
            command (str): 要运行的命令
            cwd (str | None, optional): 工作目录. 默认为当前目录.

        Returns:
            str | None: 命令的标准输出，执行失败返回None
        """
        result = run_command(command, ignore_error=True, capture=True, echo=False, cwd=cwd, dry_run=False)
        return result.stdout if result else None


@_support_dry_run(lambda path: f"[toolchain] Create directory {path}.")
def mkdir(path: str, remove_if_exist=True, dry_run: bool | None = None) -> None:
    """创建目录

    Args:
        path (str): 要创建的目录
        remove_if_exist (bool, optional): 是否先删除已存在的同名目录. 默认先删除已存在的同名目录.
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    if remove_if_exist and os.path.exists(path):
        shutil.rmtree(path)
    os.makedirs(path, exist_ok=True)


@_support_dry_run(lambda src, dst: f"[toolchain] Copy {src} -> {dst}.")
def copy(src: str, dst: str, overwrite=True, follow_symlinks: bool = False, dry_run: bool | None = None) -> None:
    """复制文件或目录

    Args:
        src (str): 源路径
        dst (str): 目标路径
        overwrite (bool, optional): 是否覆盖已存在项. 默认为覆盖.
        follow_symlinks (bool, optional): 是否复制软链接指向的目标，而不是软链接本身. 默认为保留软链接.
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    dir = os.path.dirname(dst)
    if dir != "":
        os.makedirs(dir, exist_ok=True)
    if not overwrite and os.path.exists(dst):
        return
    if os.path.isdir(src):
        if os.path.exists(dst):
            shutil.rmtree(dst)
        shutil.copytree(src, dst, not follow_symlinks)
    else:
        if os.path.lexists(dst):
            os.remove(dst)
        shutil.copy2(src, dst, follow_symlinks=follow_symlinks)


@_support_dry_run(lambda path: f"[toolchain] Remove {path}.")
def remove(path: str, dry_run: bool | None = None) -> None:
    """删除指定路径

    Args:
        path (str): 要删除的路径
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    else:
        os.remove(path)


@_support_dry_run(lambda path: f"[toolchain] Remove {path} if path exists.")
def remove_if_exists(path: str, dry_run: bool | None = None) -> None:
    """如果指定路径存在则删除指定路径

    Args:
        path (str): 要删除的路径
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    if os.path.lexists(path):
        remove(path)


@_support_dry_run(lambda src, dst: f"[toolchain] Rename {src} -> {dst}.")
def rename(src: str, dst: str, dry_run: bool | None = None) -> None:
    """重命名指定路径

    Args:
        src (str): 源路径
        dst (str): 目标路径
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    os.replace(src, dst)


@_support_dry_run(lambda target, path: f"[toolchain] Symlink {path} -> {target}.")
def symlink(target: str, path: str, dry_run: bool | None = None) -> None:
    """创建软链接，已存在的同名文件会被替换

    Args:
        target (str): 软链接指向的目标，通常为相对路径
        path (str): 软链接所在路径
        dry_run (bool | None, optional): 是否只回显命令而不执行，默认为None.
    """
    if os.path.lexists(path):
        os.remove(path)
    os.symlink(target, path)


def get_default_jobs(environ: Mapping[str, str] = os.environ) -> int:
    """获取默认并发数，优先使用PARALLEL_JOBS环境变量，否则使用cpu核心数

    Args:
        environ (Mapping[str, str], optional): 环境变量. 默认为当前进程的环境变量.

    Returns:
        int: 并发数
    """
    jobs = environ.get("PARALLEL_JOBS", "")
    if jobs != "":
        assert jobs.isdigit() and int(jobs) > 0, f"Invalid PARALLEL_JOBS: {jobs}."
        return int(jobs)
    return psutil.cpu_count() or 1


def get_root_dir() -> str:
    """获取toolchain仓库根目录"""
    return os.path.dirname(os.path.abspath(os.path.dirname(__file__)))


def get_default_home() -> str:
    """获取默认源代码树根目录，即toolchain仓库的上级目录"""
    return os.path.dirname(get_root_dir())


def get_install_prefix(home: str) -> str:
    """获取工具链安装目录"""
    return os.path.join(os.path.abspath(home), "install")


class basic_environment:
    """各组件共用的基本构建环境"""

    home: str  # 源代码树所在的目录
    jobs: int  # 编译所用线程数
    root_dir: str  # toolchain仓库所在目录
    build_prefix: str  # 构建目录
    install_prefix: str  # 安装目录
    bin_dir: str  # 安装后可执行文件所在目录
    log_dir: str  # 本次构建的日志目录

    def __init__(self, home: str, jobs: int, timestamp: str | None = None) -> None:
        self.home = os.path.abspath(home)
        self.jobs = jobs
        self.root_dir = get_root_dir()
        self.build_prefix = os.path.join(self.home, "build")
        self.install_prefix = get_install_prefix(self.home)
        self.bin_dir = os.path.join(self.install_prefix, "bin")
        self.log_dir = os.path.join(self.home, "logs", timestamp or time.strftime("%Y%m%d-%H%M"))

    def register_in_env(self) -> None:
        """注册安装路径到环境变量"""
        os.environ["PATH"] = f"{self.bin_dir}{os.pathsep}{os.environ.get('PATH', '')}"


def _check_home(home: str) -> None:
    assert os.path.isdir(home), f'The home dir "{home}" does not exist.'


class usage_parser(argparse.ArgumentParser):
    """遇到无法识别的参数时打印帮助并以1退出的命令行解析器，--help仍以0退出

    应当以allow_abbrev=False创建，选项只接受完整名称
    """

    inline_option_list: set[str]  # 只接受--option=value形式的选项

    def __init__(self, *args, inline_option_list: Iterable[str] = (), **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.inline_option_list = set(inline_option_list)

    def parse_known_args(self, args=None, namespace=None):
        arg_list = sys.argv[1:] if args is None else list(args)
        for arg in arg_list:
            if arg == "--":
                break
            if arg in self.inline_option_list:
                self.error(f"argument {arg}: expected {arg}=<value>")
        return super().parse_known_args(arg_list, namespace)

    def error(self, message: str) -> typing.NoReturn:
        self.print_help()
        print(f"{self.prog}: error: {message}", file=sys.stderr)
        sys.exit(1)


class basic_configure:
    home: str  # 源码树根目录

    def __init__(self, home: str = get_default_home()) -> None:
        self.home = os.path.abspath(home)

    @staticmethod
    def add_argument(parser: argparse.ArgumentParser) -> None:
        """为argparse添加--home、--export、--import和--dry-run选项

        Args:
            parser (argparse.ArgumentParser): 命令行解析器
        """
        parser.add_argument("--home", type=str, help="The directory containing the source checkouts.", default=get_default_home())
        parser.add_argument("--export", dest="export_file", type=str, help="Export settings to specific file.")
        parser.add_argument("--import", dest="import_file", type=str, help="Import settings from specific file.")
        parser.add_argument(
            "--dry-run",
            dest="dry_run",
            action=argparse.BooleanOptionalAction,
            help="Preview the commands without actually executing them.",
            default=False,
        )

    @classmethod
    def parse_args(cls, args: argparse.Namespace):
        _check_home(args.home)
        command_dry_run.set(args.dry_run)
        args_list = vars(args)
        parma_list: list = []
        for parma in itertools.islice(inspect.signature(cls.__init__).parameters.keys(), 1, None):
            assert parma in args_list, f"The parma {parma} is not in args. Every parma except self should be able to find in args."
            parma_list.append(args_list[parma])
        return cls(*parma_list)

    def save_config(self, args: argparse.Namespace) -> None:
        """将配置保存到文件，使用json格式

        Args:
            args (argparse.Namespace): 用户输入参数

        Raises:
            RuntimeError: 保存失败抛出异常
        """
        export_file: str | None = args.export_file
        if export_file:
            try:
                with open(export_file, "w") as file:
                    json.dump(vars(self), file, indent=4)
                print(f'[toolchain] Settings have been written to file "{export_file}"')
            except Exception as e:
                raise RuntimeError(f"Export settings failed: {e}")

    def load_config(self, args: argparse.Namespace) -> None:
        """从配置文件中加载配置，然后合并加载的配置和用户输入的配置

        Args:
            args (argparse.Namespace): 用户输入参数

        Raises:
            RuntimeError: 加载失败抛出异常
        """
        import_file: str | None = args.import_file
        if import_file:
            try:
                with open(import_file) as file:
                    import_config_list = json.load(file)
                if not isinstance(import_config_list, dict):
                    raise RuntimeError(f'Invalid configure file "{import_file}".')
            except Exception as e:
                raise RuntimeError(f'Import file "{import_file}" failed: {e}')
            current_config_list = vars(self)
            default_config_list = vars(type(self)())
            self.__dict__ = {
                # 若import_config中没有则使用default_config中的值，以便在配置类更新后原配置文件可以正确加载
                key: (import_config_list.get(key, default_config_list[key]) if value == default_config_list[key] else value)
                for key, value in current_config_list.items()
            }


assert __name__ != "__main__", "Import this file instead of running it directly."
