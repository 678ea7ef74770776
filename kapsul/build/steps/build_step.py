"""
流水线步骤基类模块

定义打包流水线步骤的抽象接口。
"""

from abc import ABC, abstractmethod

from ..build_context import PipelineContext, PipelineState


class BuildStep(ABC):
    """流水线步骤抽象基类

    Args:
        name: 步骤名称
        description: 步骤描述（用于日志）
        state: 步骤执行期间流水线所处的状态
    """

    def __init__(self, name: str, description: str, state: PipelineState):
        self.name = name
        self.description = description
        self.state = state

    def should_run(self, context: PipelineContext) -> bool:
        """是否需要执行此步骤"""
        return True

    @abstractmethod
    def execute(self, context: PipelineContext) -> None:
        """执行步骤

        Raises:
            PipelineHalted: 调用方决定停止
        """
        pass
