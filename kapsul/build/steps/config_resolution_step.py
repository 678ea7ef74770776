"""
配置解析步骤模块

生成有效构建配置，构建前校验，并处理“没有构建步骤”的情况。
"""

from ...config.resolver import BuildConfigResolver
from ...utils.logging import LogStage, debug, error, info, warning
from ..build_context import PipelineContext, PipelineHalted, PipelineState
from .build_step import BuildStep
from .decisions import PipelineDecisions


class ConfigResolutionStep(BuildStep):
    """配置解析步骤"""

    def __init__(self, resolver: BuildConfigResolver, decisions: PipelineDecisions):
        super().__init__("config", "解析构建配置", PipelineState.CONFIG_RESOLVED)
        self.resolver = resolver
        self.decisions = decisions

    def execute(self, context: PipelineContext) -> None:
        """解析并校验配置

        Raises:
            ConfigValidationError: 配置校验失败
            PipelineHalted: 没有构建步骤且调用方选择停止
        """
        config = self.resolver.resolve_effective_config(context.project_type, context.package_manager)
        context.config = config

        for key, value in self.resolver.describe(config).items():
            debug(f"  {key}: {value}", stage=LogStage.CONFIG)

        # 输出目录在构建之后检查
        validation = self.resolver.validate(config, check_output_dir=False)
        if not validation.is_valid:
            for message in validation.errors:
                error(message, stage=LogStage.CONFIG)
            context.messages.extend(validation.errors)
            validation.raise_for_errors()

        missing_vars = self.resolver.missing_environment_vars(config)
        if missing_vars:
            debug(f"未设置的环境变量: {', '.join(missing_vars)}", stage=LogStage.CONFIG)

        if self.resolver.has_build_command(context.project_type, context.package_manager, config):
            info(f"构建命令: {config.build_command}", stage=LogStage.CONFIG)
            return

        context.no_build_step = True
        suggestion = self.resolver.suggest_build_command(context.project_type, context.package_manager)
        warning("未找到可用的构建步骤", stage=LogStage.CONFIG)
        debug(f"建议: {suggestion}", stage=LogStage.CONFIG)

        if not self.decisions.continue_without_build():
            context.messages.append("未找到可用的构建步骤")
            context.messages.append(suggestion)
            raise PipelineHalted(PipelineState.FAILED, "未找到可用的构建步骤")

        context.build_skipped = True
        context.warnings.append("未执行构建，直接归档项目文件")
        info("跳过构建步骤", stage=LogStage.CONFIG)
