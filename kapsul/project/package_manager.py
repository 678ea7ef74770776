"""
包管理器解析

推断项目使用的包管理器，并根据静态映射表生成命令参数列表。
"""

import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..config.schema import PackageManagerKind
from ..utils.logging import LogStage, debug
from .inspector import ProjectInspector


# 锁文件探测顺序
LOCKFILES = [
    ("pnpm-lock.yaml", PackageManagerKind.PNPM),
    ("yarn.lock", PackageManagerKind.YARN),
    ("bun.lockb", PackageManagerKind.BUN),
    ("bun.lock", PackageManagerKind.BUN),
    ("package-lock.json", PackageManagerKind.NPM),
]

# 全局可执行文件探测顺序，npm 作为最终默认值不参与探测
BINARY_LOOKUP_ORDER = [PackageManagerKind.PNPM, PackageManagerKind.YARN, PackageManagerKind.BUN]

LOOKUP_TIMEOUT_SEC = 10

RUN_PREFIX: Dict[PackageManagerKind, List[str]] = {
    PackageManagerKind.NPM: ["npm", "run"],
    PackageManagerKind.PNPM: ["pnpm", "run"],
    PackageManagerKind.YARN: ["yarn"],
    PackageManagerKind.BUN: ["bun", "run"],
}

# 执行本地安装的工具（next、tsc 等）
EXEC_PREFIX: Dict[PackageManagerKind, List[str]] = {
    PackageManagerKind.NPM: ["npx"],
    PackageManagerKind.PNPM: ["pnpm"],
    PackageManagerKind.YARN: ["yarn"],
    PackageManagerKind.BUN: ["bun"],
}

INSTALL_COMMANDS: Dict[PackageManagerKind, List[str]] = {
    PackageManagerKind.NPM: ["npm", "install"],
    PackageManagerKind.PNPM: ["pnpm", "install"],
    PackageManagerKind.YARN: ["yarn"],
    PackageManagerKind.BUN: ["bun", "install"],
}

DEV_COMMANDS: Dict[PackageManagerKind, List[str]] = {
    PackageManagerKind.NPM: ["npm", "run", "dev"],
    PackageManagerKind.PNPM: ["pnpm", "run", "dev"],
    PackageManagerKind.YARN: ["yarn", "dev"],
    PackageManagerKind.BUN: ["bun", "dev"],
}


def format_command(argv: Sequence[str]) -> str:
    """将参数列表格式化为可显示、可再次解析的命令字符串"""
    return shlex.join(list(argv))


def get_run_command(kind: PackageManagerKind, script: str) -> List[str]:
    """运行 package.json 中脚本的命令"""
    return RUN_PREFIX[kind] + [script]


def get_build_command(kind: PackageManagerKind) -> List[str]:
    return get_run_command(kind, "build")


def get_exec_command(kind: PackageManagerKind, tool: str, *args: str) -> List[str]:
    """执行本地工具的命令，例如 npx next build"""
    return EXEC_PREFIX[kind] + [tool, *args]


def get_install_command(kind: PackageManagerKind) -> List[str]:
    return list(INSTALL_COMMANDS[kind])


def get_test_command(kind: PackageManagerKind) -> List[str]:
    if kind == PackageManagerKind.BUN:
        return ["bun", "test"]
    return get_run_command(kind, "test")


def get_dev_command(kind: PackageManagerKind) -> List[str]:
    return list(DEV_COMMANDS[kind])


def get_add_package_command(kind: PackageManagerKind, package: str, dev: bool = False) -> List[str]:
    if kind == PackageManagerKind.NPM:
        return ["npm", "install"] + (["--save-dev"] if dev else []) + [package]
    return [kind.value, "add"] + (["-D"] if dev else []) + [package]


def is_command_available(command: str) -> bool:
    """检查可执行文件是否可用（执行 --version），任何错误都视为不可用"""
    executable = shutil.which(command)
    if not executable:
        return False

    try:
        completed = subprocess.run(
            [executable, "--version"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            timeout=LOOKUP_TIMEOUT_SEC,
        )
    except (OSError, subprocess.SubprocessError):
        return False
    return completed.returncode == 0


class PackageManagerResolver:
    """包管理器解析器"""

    def __init__(self, project_root: Union[str, Path] = ".", inspector: Optional[ProjectInspector] = None):
        self.project_root = Path(project_root)
        self.inspector = inspector or ProjectInspector(self.project_root)

    def detect_package_manager(self) -> PackageManagerKind:
        """推断包管理器

        顺序：锁文件 > package.json 的 packageManager 字段 > 全局可执行文件 > npm
        """
        for lockfile, kind in LOCKFILES:
            if (self.project_root / lockfile).exists():
                debug(f"根据锁文件 {lockfile} 识别为 {kind.value}", stage=LogStage.INSPECT)
                return kind

        declared = self._declared_package_manager()
        if declared:
            return declared

        for kind in BINARY_LOOKUP_ORDER:
            if is_command_available(kind.value):
                debug(f"检测到全局可用的 {kind.value}", stage=LogStage.INSPECT)
                return kind

        return PackageManagerKind.NPM

    def _declared_package_manager(self) -> Optional[PackageManagerKind]:
        manifest = self.inspector.read_manifest() or {}
        field = manifest.get("packageManager")
        if not isinstance(field, str):
            return None

        for kind in (PackageManagerKind.PNPM, PackageManagerKind.YARN, PackageManagerKind.BUN, PackageManagerKind.NPM):
            if field.startswith(kind.value):
                return kind
        return None

    def has_script(self, name: str) -> bool:
        """package.json 中是否定义了指定脚本"""
        return bool(self.inspector.get_scripts().get(name))

    def has_local_binary(self, name: str) -> bool:
        """node_modules/.bin 下是否存在指定工具"""
        return (self.project_root / "node_modules" / ".bin" / name).exists()
