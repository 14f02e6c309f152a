import typing
from collections.abc import Callable, Iterable

if typing.TYPE_CHECKING:
    from toolchain_environment import environment


class component_error(RuntimeError):
    """组件构建失败"""

    name: str  # 组件名
    log_path: str  # 该组件的日志文件

    def __init__(self, name: str, log_path: str) -> None:
        super().__init__(f"Error building {name}, check log file {log_path}!")
        self.name = name
        self.log_path = log_path


class component:
    """工具链组件描述"""

    name: str  # 组件名，同时也是命令行选项--with-<name>的后缀
    source: str  # 源代码所在目录名，相对于源码树根目录
    depends: tuple[str, ...]  # 前置组件，启用本组件时会一并启用
    use_installed_tools: bool  # 是否需要将已安装的工具加入PATH
    build: Callable[["environment"], None]  # 构建函数

    def __init__(
        self,
        name: str,
        source: str,
        depends: tuple[str, ...],
        use_installed_tools: bool,
        build: Callable[["environment"], None],
    ) -> None:
        self.name = name
        self.source = source
        self.depends = depends
        self.use_installed_tools = use_installed_tools
        self.build = build

    @property
    def title(self) -> str:
        """用于提示信息的组件名"""
        return component_title.get(self.name, self.name)

    @property
    def build_title(self) -> str:
        """开始构建时提示的组件名，只有llvm使用大写"""
        return component_build_title.get(self.name, self.name)

    @property
    def option_name(self) -> str:
        """额外配置选项对应的环境变量名，如EXTRA_COMPILER_RT_OPTS"""
        return f"EXTRA_{self.name.upper().replace('-', '_')}_OPTS"


# 组件列表，按注册顺序即为默认构建顺序
component_list: dict[str, component] = {}

component_title: dict[str, str] = {
    "gdb": "GDB",
    "qemu": "QEMU",
    "binutils": "Binutils",
    "llvm": "LLVM",
    "ldc": "LDC",
    "dub": "DUB",
    "newlib": "Newlib",
}

component_build_title: dict[str, str] = {"llvm": "LLVM"}


def register(name: str, source: str, depends: tuple[str, ...] = (), use_installed_tools: bool = False):
    """注册组件构建函数到列表

    Args:
        name (str): 组件名
        source (str): 源代码目录名
        depends (tuple[str, ...], optional): 前置组件. 默认无前置组件.
        use_installed_tools (bool, optional): 构建时是否需要已安装的工具. 默认不需要.
    """

    def decorator(fn: Callable[["environment"], None]) -> Callable[["environment"], None]:
        assert name not in component_list, f"Component {name} has been registered."
        for depend in depends:
            assert depend in component_list, f"The depend {depend} of {name} should be registered before it."
        component_list[name] = component(name, source, depends, use_installed_tools, fn)
        return fn

    return decorator


def expand(selected: Iterable[str]) -> set[str]:
    """将选中的组件与其全部前置组件合并

    Args:
        selected (Iterable[str]): 用户选中的组件

    Returns:
        set[str]: 需要构建的组件集合
    """
    result: set[str] = set()
    pending = list(selected)
    while pending:
        name = pending.pop()
        assert name in component_list, f"Unknown component: {name}"
        if name not in result:
            result.add(name)
            pending.extend(component_list[name].depends)
    return result


def resolve(selected: Iterable[str]) -> list[component]:
    """计算构建顺序，前置组件总在依赖它的组件之前，无依赖关系的组件保持注册顺序

    Args:
        selected (Iterable[str]): 需要构建的组件

    Returns:
        list[component]: 按构建顺序排列的组件
    """
    remaining = [item for item in component_list.values() if item.name in expand(selected)]
    order: list[component] = []
    done: set[str] = set()
    while remaining:
        for item in remaining:
            if all(depend in done for depend in item.depends):
                break
        else:
            assert False, f"Circular dependency among: {', '.join(item.name for item in remaining)}"
        remaining.remove(item)
        order.append(item)
        done.add(item.name)
    return order


assert __name__ != "__main__", "Import this file instead of running it directly."
