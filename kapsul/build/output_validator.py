"""
构建输出校验

扫描构建输出文本中的错误特征，并检查文件系统中的成功标志文件。
结果只作为提示信息，不会覆盖基于退出码的成功/失败判断。
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Pattern, Union

from ..config.schema import BuildConfig, ProjectType


GENERIC_ERROR_PATTERNS = [
    r"error",
    r"failed",
    r"exception",
    r"cannot find module",
    r"not found",
]

PROJECT_ERROR_PATTERNS: Dict[ProjectType, List[str]] = {
    ProjectType.NEXT: [
        r"failed to compile",
        r"build error occurred",
    ],
    ProjectType.EXPRESS: [
        r"error TS\d+",
        r"syntaxerror",
    ],
    ProjectType.NODE: [
        r"error TS\d+",
        r"syntaxerror",
    ],
}


@dataclass
class OutputValidation:
    """输出校验结果"""
    success: bool
    messages: List[str] = field(default_factory=list)


def _compile(patterns: List[str]) -> List[Pattern[str]]:
    return [re.compile(pattern, re.IGNORECASE) for pattern in patterns]


class BuildOutputValidator:
    """构建输出校验器

    Args:
        project_root: 项目根目录（用于检查成功标志文件）
    """

    def __init__(self, project_root: Union[str, Path] = "."):
        self.project_root = Path(project_root)

    def get_patterns(self, project_type: ProjectType) -> List[Pattern[str]]:
        return _compile(GENERIC_ERROR_PATTERNS + PROJECT_ERROR_PATTERNS.get(project_type, []))

    def validate(self, project_type: ProjectType, output_text: str) -> OutputValidation:
        """逐行扫描构建输出

        每个模式只记录第一条匹配的行，同一行不重复记录。
        """
        lines = output_text.splitlines()
        messages: List[str] = []

        for pattern in self.get_patterns(project_type):
            for line in lines:
                if pattern.search(line):
                    text = line.strip()
                    if text not in messages:
                        messages.append(text)
                    break

        return OutputValidation(success=not messages, messages=messages)

    def check_success_indicators(self, config: BuildConfig) -> bool:
        """任意一个成功标志文件存在即视为成功；未配置标志文件时返回 True"""
        if not config.success_indicators:
            return True
        return any((self.project_root / indicator).exists() for indicator in config.success_indicators)

    def check_output_dir(self, config: BuildConfig) -> bool:
        """输出目录是否存在；未配置输出目录时返回 True"""
        if not config.output_dir:
            return True
        return (self.project_root / config.output_dir).exists()
