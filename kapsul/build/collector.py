"""
文件收集器

遍历项目目录，根据排除/包含模式确定需要归档的文件。

模式语义：
- 含 * 或 ? 的模式转换为正则表达式，在相对路径中任意位置搜索；
- 不含通配符的模式按子串包含匹配（不是完全相等）；
- 路径被任一排除模式匹配即排除；包含列表非空时，还必须匹配至少一个包含模式。
"""

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Pattern, Set, Union

from ..utils.paths import format_size, to_posix


WILDCARD_CHARS = ("*", "?")


@dataclass
class FileInfo:
    """文件信息"""
    path: Path  # 绝对路径
    relative_path: Path  # 相对于项目根目录的路径
    size: int  # 文件大小（字节）
    mtime: float  # 修改时间（时间戳）

    @property
    def archive_name(self) -> str:
        """归档内使用的路径（统一使用正斜杠）"""
        return to_posix(self.relative_path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.archive_name,
            'size': self.size,
            'mtime': self.mtime,
        }


@lru_cache(maxsize=256)
def glob_to_regex(pattern: str) -> Pattern[str]:
    """将通配符模式转换为正则表达式（* -> .*，? -> .）"""
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts))


def match_pattern(path: str, pattern: str) -> bool:
    """匹配单个模式

    Args:
        path: posix 风格的相对路径
        pattern: 排除/包含模式

    Returns:
        bool: 是否匹配
    """
    pattern = to_posix(pattern)
    if any(char in pattern for char in WILDCARD_CHARS):
        return glob_to_regex(pattern).search(path) is not None
    return pattern in path


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    return any(match_pattern(path, pattern) for pattern in patterns)


class FileCollector:
    """文件收集器

    负责扫描项目目录，应用排除/包含规则。
    """

    def __init__(self, project_root: Union[str, Path]):
        self.project_root = Path(project_root)
        self.collected_files: List[FileInfo] = []
        self.total_size: int = 0

    def is_selected(self, relative_path: str, exclude: List[str], include: List[str]) -> bool:
        """判断文件是否应写入归档"""
        if matches_any(relative_path, exclude):
            return False
        if include:
            return matches_any(relative_path, include)
        return True

    def collect_files(
        self,
        exclude: Optional[List[str]] = None,
        include: Optional[List[str]] = None,
        skip_paths: Optional[Iterable[Path]] = None,
    ) -> List[FileInfo]:
        """收集文件

        Args:
            exclude: 排除模式列表
            include: 包含模式列表（为空表示全部包含）
            skip_paths: 始终跳过的绝对路径（例如归档文件自身）

        Returns:
            List[FileInfo]: 按相对路径排序的文件列表
        """
        exclude = list(exclude or [])
        include = list(include or [])
        skipped: Set[Path] = {Path(p).resolve() for p in (skip_paths or [])}

        self.collected_files = []
        self.total_size = 0

        for file_path in self._walk_directory(exclude):
            if file_path.resolve() in skipped:
                continue

            relative = file_path.relative_to(self.project_root)
            if not self.is_selected(to_posix(relative), exclude, include):
                continue

            file_info = self._create_file_info(file_path, relative)
            if file_info:
                self.collected_files.append(file_info)
                self.total_size += file_info.size

        # 按相对路径排序，确保输出一致性
        self.collected_files.sort(key=lambda x: x.archive_name)
        return self.collected_files

    def get_statistics(self) -> Dict[str, Any]:
        """获取收集统计信息"""
        return {
            'total_files': len(self.collected_files),
            'total_size': self.total_size,
            'total_size_mb': round(self.total_size / (1024 * 1024), 2),
        }

    def _walk_directory(self, exclude: List[str]) -> Iterator[Path]:
        """遍历项目目录，跳过被排除的目录

        目录匹配排除模式时，其下所有路径也必然匹配，可以直接剪枝。
        """
        for dirpath, dirnames, filenames in os.walk(self.project_root):
            current = Path(dirpath)
            kept = []
            for name in sorted(dirnames):
                relative = to_posix((current / name).relative_to(self.project_root))
                if matches_any(relative, exclude) or matches_any(relative + "/", exclude):
                    continue
                kept.append(name)
            dirnames[:] = kept

            for name in sorted(filenames):
                yield current / name

    def _create_file_info(self, file_path: Path, relative_path: Path) -> Optional[FileInfo]:
        try:
            stat = file_path.stat()
        except OSError:
            # 忽略无法访问的文件（如损坏的符号链接）
            return None
        return FileInfo(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            mtime=stat.st_mtime,
        )


def get_file_size_info(path: Union[str, Path], include_node_modules: bool = False) -> Dict[str, Any]:
    """统计文件或目录的大小和文件数，默认跳过 node_modules"""
    total_size = 0
    file_count = 0
    root = Path(path)

    try:
        if root.is_file():
            total_size = root.stat().st_size
            file_count = 1
        else:
            for dirpath, dirnames, filenames in os.walk(root):
                if not include_node_modules:
                    dirnames[:] = [d for d in dirnames if d != "node_modules"]
                for name in filenames:
                    try:
                        total_size += (Path(dirpath) / name).stat().st_size
                    except OSError:
                        continue
                    file_count += 1
    except OSError as e:
        return {'total_size': 0, 'file_count': 0, 'formatted_size': '0 B', 'error': str(e)}

    return {
        'total_size': total_size,
        'file_count': file_count,
        'formatted_size': format_size(total_size),
    }
