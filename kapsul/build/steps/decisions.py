"""
流水线决策点

流水线在三种情况下需要调用方决定继续还是停止：没有构建步骤、构建失败、
声明的输出目录在构建后不存在。
"""

from pathlib import Path
from typing import List

from ..build_context import BuildResult


class PipelineDecisions:
    """非交互式决策，返回构造时给定的固定答案

    CLI 通过子类在这些决策点询问用户。

    Args:
        continue_without_build: 没有构建步骤时是否直接归档
        continue_on_build_failure: 构建失败后是否仍然归档
        continue_on_missing_output: 输出目录不存在时是否继续
    """

    def __init__(
        self,
        continue_without_build: bool = False,
        continue_on_build_failure: bool = False,
        continue_on_missing_output: bool = True,
    ):
        self._continue_without_build = continue_without_build
        self._continue_on_build_failure = continue_on_build_failure
        self._continue_on_missing_output = continue_on_missing_output

    def continue_without_build(self) -> bool:
        return self._continue_without_build

    def continue_after_build_failure(self, result: BuildResult, messages: List[str]) -> bool:
        return self._continue_on_build_failure

    def continue_without_output_dir(self, path: Path) -> bool:
        return self._continue_on_missing_output
