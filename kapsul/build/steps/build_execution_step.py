"""
构建执行步骤模块

运行构建命令序列，把进度事件转发给流水线回调。
"""

from ...utils.logging import LogStage, error, info
from ..build_context import BuildPhaseError, PipelineContext, PipelineState
from ..executor import BuildExecutor
from .build_step import BuildStep


class BuildExecutionStep(BuildStep):
    """构建执行步骤

    构建失败不会在这里抛出，失败的 BuildResult 交给输出校验步骤处理。
    """

    def __init__(self, executor: BuildExecutor):
        super().__init__("build", "执行构建", PipelineState.BUILDING)
        self.executor = executor

    def should_run(self, context: PipelineContext) -> bool:
        return not context.build_skipped

    def execute(self, context: PipelineContext) -> None:
        try:
            result = self.executor.execute(context.config, context.emit)
        except BuildPhaseError as e:
            error(str(e), stage=LogStage.BUILD)
            context.messages.append(str(e))
            result = e.result

        context.build_result = result
        context.stats['build_duration'] = result.duration

        if result.success:
            info(f"构建耗时 {result.duration:.1f} 秒", stage=LogStage.BUILD)
        else:
            phase = result.failed_phase.value if result.failed_phase else "build"
            error(f"构建失败 [{phase}]，退出码: {result.exit_code}", stage=LogStage.BUILD)
