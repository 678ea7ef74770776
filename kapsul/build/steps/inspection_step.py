"""
项目检查步骤模块

识别项目类型和包管理器。
"""

from ...config.schema import ProjectType
from ...project.inspector import ProjectInspector
from ...project.package_manager import PackageManagerResolver
from ...utils.logging import LogStage, debug, info, warning
from ..build_context import PipelineContext, PipelineState
from .build_step import BuildStep


class InspectionStep(BuildStep):
    """项目检查步骤"""

    def __init__(self, inspector: ProjectInspector, package_managers: PackageManagerResolver):
        super().__init__("inspect", "识别项目类型", PipelineState.INSPECTING)
        self.inspector = inspector
        self.package_managers = package_managers

    def execute(self, context: PipelineContext) -> None:
        project_type = self.inspector.detect_project_type()
        package_manager = self.package_managers.detect_package_manager()

        context.project_type = project_type
        context.package_manager = package_manager
        context.stats['project_name'] = self.inspector.get_project_name()

        if project_type == ProjectType.UNKNOWN:
            message = "无法识别项目类型，将使用通用默认配置"
            warning(message, stage=LogStage.INSPECT)
            context.warnings.append(message)

        info(f"项目类型: {project_type.value}，包管理器: {package_manager.value}", stage=LogStage.INSPECT)
        debug(f"TypeScript 项目: {self.inspector.is_typescript_project()}", stage=LogStage.INSPECT)
