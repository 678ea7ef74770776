"""
归档步骤模块

按有效配置计算归档计划并生成归档文件。
"""

from ...utils.logging import LogStage, error
from ..archiver import ArchiveBuilder, ArchiveError, ArchivePlan
from ..build_context import PipelineContext, PipelineState
from .build_step import BuildStep


class ArchiveStep(BuildStep):
    """归档步骤"""

    def __init__(self):
        super().__init__("archive", "生成归档", PipelineState.ARCHIVING)

    def execute(self, context: PipelineContext) -> None:
        """生成归档

        Raises:
            ArchiveError: 归档失败
        """
        try:
            plan = ArchivePlan.from_config(
                context.config,
                context.project_type,
                context.project_root,
                context.output_path,
            )
            builder = ArchiveBuilder(context.project_root, on_progress=context.emit)
            artifact = builder.build(plan)
        except ArchiveError as e:
            error(f"归档失败: {e}", stage=LogStage.ARCHIVE)
            context.messages.append(str(e))
            raise

        context.artifact_path = artifact
        context.archive_oversized = builder.oversized
        context.stats['archive_format'] = plan.format.value
        context.stats['archived_files'] = len(builder.files)
        context.stats['archive_size'] = artifact.stat().st_size
