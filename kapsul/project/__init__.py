"""项目探测模块

推断项目类型、工具链信息和包管理器。
"""

from .inspector import DetectionError, ProjectInspector
from .package_manager import (
    PackageManagerResolver,
    format_command,
    get_add_package_command,
    get_build_command,
    get_dev_command,
    get_exec_command,
    get_install_command,
    get_run_command,
    get_test_command,
    is_command_available,
)

__all__ = [
    "DetectionError",
    "ProjectInspector",
    "PackageManagerResolver",
    "format_command",
    "get_add_package_command",
    "get_build_command",
    "get_dev_command",
    "get_exec_command",
    "get_install_command",
    "get_run_command",
    "get_test_command",
    "is_command_available",
]
