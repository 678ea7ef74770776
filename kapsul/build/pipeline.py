"""
打包流水线模块

使用管道模式依次执行：识别项目 → 解析配置 → 构建 → 校验输出 → 归档。
每次运行都返回结构化结果，构建和归档失败不会被静默丢弃。
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..collaborators import ArtifactUploader, BuildOverrideSource, TransportError, UploadResult
from ..config.loader import ConfigError, ConfigLoader, config_loader
from ..config.resolver import BuildConfigResolver
from ..config.schema import BuildConfig, PackageManagerKind, ProjectType
from ..project.inspector import ProjectInspector
from ..project.package_manager import PackageManagerResolver
from ..utils.logging import LogStage, debug, error, info, success
from ..utils.paths import format_size
from .archiver import ArchiveError, ArchivePlan
from .build_context import (
    BuildError,
    BuildPhase,
    BuildResult,
    PipelineContext,
    PipelineHalted,
    PipelineState,
    ProgressCallback,
)
from .executor import BuildExecutor
from .output_validator import BuildOutputValidator
from .steps import (
    ArchiveStep,
    BuildExecutionStep,
    BuildStep,
    ConfigResolutionStep,
    InspectionStep,
    OutputValidationStep,
    PipelineDecisions,
)


@dataclass
class PipelineResult:
    """流水线运行结果"""
    success: bool
    state: PipelineState
    messages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    build_result: Optional[BuildResult] = None
    artifact_path: Optional[Path] = None
    project_type: Optional[ProjectType] = None
    package_manager: Optional[PackageManagerKind] = None
    config: Optional[BuildConfig] = None
    no_build_step: bool = False
    build_skipped: bool = False
    failed_phase: Optional[BuildPhase] = None
    validation_messages: List[str] = field(default_factory=list)
    archive_oversized: bool = False
    stats: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_context(cls, context: PipelineContext, success: bool) -> "PipelineResult":
        build_result = context.build_result
        return cls(
            success=success,
            state=context.state,
            messages=list(context.messages),
            warnings=list(context.warnings),
            build_result=build_result,
            artifact_path=context.artifact_path,
            project_type=context.project_type,
            package_manager=context.package_manager,
            config=context.config,
            no_build_step=context.no_build_step,
            build_skipped=context.build_skipped,
            failed_phase=build_result.failed_phase if build_result else None,
            validation_messages=list(context.validation_messages),
            archive_oversized=context.archive_oversized,
            stats=dict(context.stats),
        )


class PackagingPipeline:
    """打包流水线，负责协调各步骤的执行

    Args:
        project_root: 项目根目录
        decisions: 决策点答复，默认使用 PipelineDecisions()
        override_source: 覆盖配置位置（可选，默认项目根目录下的 .kapsul.build.json）
        executor: 构建执行器（可选）
    """

    def __init__(
        self,
        project_root: Union[str, Path] = ".",
        decisions: Optional[PipelineDecisions] = None,
        override_source: Optional[BuildOverrideSource] = None,
        executor: Optional[BuildExecutor] = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.decisions = decisions or PipelineDecisions()

        loader: ConfigLoader = config_loader
        if override_source is not None:
            loader = ConfigLoader(override_path=override_source.get_build_override_path())

        self.inspector = ProjectInspector(self.project_root)
        self.package_managers = PackageManagerResolver(self.project_root, self.inspector)
        self.resolver = BuildConfigResolver(
            self.project_root,
            inspector=self.inspector,
            package_managers=self.package_managers,
            loader=loader,
        )
        self.executor = executor or BuildExecutor(self.project_root)
        self.validator = BuildOutputValidator(self.project_root)

        self._steps: List[BuildStep] = []
        self._init_default_steps()

    def _init_default_steps(self) -> None:
        """初始化默认的流水线步骤"""
        self._steps = [
            InspectionStep(self.inspector, self.package_managers),
            ConfigResolutionStep(self.resolver, self.decisions),
            BuildExecutionStep(self.executor),
            OutputValidationStep(self.validator, self.decisions),
            ArchiveStep(),
        ]

    def get_steps(self) -> List[BuildStep]:
        """获取所有步骤"""
        return self._steps.copy()

    def resolve_output_path(self, output_path: Optional[Union[str, Path]] = None) -> Optional[Path]:
        """计算本次运行将要写入的归档路径

        相对路径按项目根目录解析，与归档步骤一致。

        Returns:
            归档路径；压缩格式无法识别时返回 None（由配置校验报告）
        """
        project_type = self.inspector.detect_project_type()
        package_manager = self.package_managers.detect_package_manager()
        config = self.resolver.resolve_effective_config(project_type, package_manager)
        try:
            plan = ArchivePlan.from_config(config, project_type, self.project_root, output_path)
        except ArchiveError:
            return None
        return plan.output_path

    def run(
        self,
        output_path: Optional[Union[str, Path]] = None,
        on_progress: Optional[ProgressCallback] = None,
        archive: bool = True,
    ) -> PipelineResult:
        """运行流水线

        Args:
            output_path: 归档输出路径，默认 <project_root>/build.<ext>
            on_progress: 构建与归档进度回调
            archive: 为 False 时只构建和校验，不生成归档

        Returns:
            PipelineResult: 运行结果，失败时 state 为 FAILED
        """
        context = PipelineContext(
            project_root=self.project_root,
            output_path=Path(output_path) if output_path is not None else None,
            progress_callback=on_progress,
        )
        context.stats['start_time'] = time.time()

        steps = [step for step in self._steps if archive or not isinstance(step, ArchiveStep)]

        try:
            info(f"开始打包项目: {self.project_root}", stage=LogStage.INSPECT)
            for step in steps:
                if not step.should_run(context):
                    debug(f"跳过步骤: {step.description}", stage=LogStage.DONE)
                    continue
                context.state = step.state
                debug(f"执行步骤: {step.description}", stage=LogStage.DONE)
                step.execute(context)

        except PipelineHalted as e:
            error(f"流水线停止: {e}", stage=LogStage.DONE)
            context.state = e.state
            return self._finish(context, success=False)

        except (ConfigError, BuildError, ArchiveError) as e:
            error(f"打包失败: {e}", stage=LogStage.DONE)
            if str(e) not in context.messages:
                context.messages.append(str(e))
            context.state = PipelineState.FAILED
            return self._finish(context, success=False)

        context.state = PipelineState.DONE
        build_ok = context.build_result is None or context.build_result.success
        return self._finish(context, success=build_ok or context.artifact_path is not None)

    def _finish(self, context: PipelineContext, success: bool) -> PipelineResult:
        context.stats['end_time'] = time.time()
        context.stats['elapsed'] = context.stats['end_time'] - context.stats['start_time']

        if success and context.artifact_path is not None:
            info(f"归档文件: {context.artifact_path}", stage=LogStage.DONE)
            info(f"归档大小: {format_size(context.stats.get('archive_size', 0))}", stage=LogStage.DONE)
        info(f"耗时: {context.stats['elapsed']:.1f}秒", stage=LogStage.DONE)

        return PipelineResult.from_context(context, success)

    def upload(self, artifact_path: Union[str, Path], uploader: ArtifactUploader) -> UploadResult:
        """上传归档文件"""
        return upload(artifact_path, uploader)


def upload(artifact_path: Union[str, Path], uploader: ArtifactUploader) -> UploadResult:
    """把归档交给上传协作者

    Raises:
        TransportError: 归档不存在或上传失败
    """
    path = Path(artifact_path)
    if not path.is_file():
        raise TransportError(f"归档文件不存在: {path}")

    info(f"上传归档: {path.name} ({format_size(path.stat().st_size)})", stage=LogStage.UPLOAD)
    try:
        result = uploader.upload_artifact(path)
    except TransportError:
        raise
    except Exception as e:
        raise TransportError(f"上传失败: {e}") from e

    if result.success:
        success("上传完成", stage=LogStage.UPLOAD)
    else:
        error(f"上传失败: {result.message}", stage=LogStage.UPLOAD)
    return result


def run_pipeline(
    project_root: Union[str, Path] = ".",
    output_path: Optional[Union[str, Path]] = None,
    on_progress: Optional[ProgressCallback] = None,
    decisions: Optional[PipelineDecisions] = None,
    archive: bool = True,
) -> PipelineResult:
    """便捷函数：运行打包流水线"""
    pipeline = PackagingPipeline(project_root, decisions=decisions)
    return pipeline.run(output_path=output_path, on_progress=on_progress, archive=archive)
