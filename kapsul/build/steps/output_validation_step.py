"""
输出校验步骤模块

扫描构建输出、检查成功标志文件和输出目录，并在失败时询问调用方是否继续。
"""

from ...utils.logging import LogStage, debug, success, warning
from ..build_context import PipelineContext, PipelineHalted, PipelineState
from ..output_validator import BuildOutputValidator
from .build_step import BuildStep
from .decisions import PipelineDecisions


class OutputValidationStep(BuildStep):
    """输出校验步骤"""

    def __init__(self, validator: BuildOutputValidator, decisions: PipelineDecisions):
        super().__init__("validate", "校验构建输出", PipelineState.VALIDATING)
        self.validator = validator
        self.decisions = decisions

    def should_run(self, context: PipelineContext) -> bool:
        return context.build_result is not None

    def execute(self, context: PipelineContext) -> None:
        """校验构建结果

        Raises:
            PipelineHalted: 构建失败或输出目录缺失，且调用方选择停止
        """
        result = context.build_result
        validation = self.validator.validate(context.project_type, result.combined_output)
        context.validation_messages = list(validation.messages)

        for message in validation.messages:
            debug(f"输出中的可疑行: {message}", stage=LogStage.VALIDATE)

        if not result.success:
            if not self.decisions.continue_after_build_failure(result, validation.messages):
                context.messages.extend(validation.messages)
                raise PipelineHalted(PipelineState.FAILED, "构建失败")
            message = "构建失败，按调用方选择继续归档"
            warning(message, stage=LogStage.VALIDATE)
            context.warnings.append(message)
            return

        config = context.config
        if not self.validator.check_success_indicators(config):
            message = f"未找到构建成功标志文件: {', '.join(config.success_indicators)}"
            warning(message, stage=LogStage.VALIDATE)
            context.warnings.append(message)

        if "output_dir" in config.declared_fields and not self.validator.check_output_dir(config):
            output_dir = self.validator.project_root / config.output_dir
            message = f"输出目录 '{config.output_dir}' 不存在"
            warning(message, stage=LogStage.VALIDATE)
            context.warnings.append(message)
            if not self.decisions.continue_without_output_dir(output_dir):
                context.messages.append(message)
                raise PipelineHalted(PipelineState.FAILED, message)

        success("构建输出校验完成", stage=LogStage.VALIDATE)
