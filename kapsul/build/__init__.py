"""构建服务模块

提供构建执行、输出校验、归档和打包流水线。
"""

from .build_context import (
    ArchiveProgressEvent,
    BuildError,
    BuildPhase,
    BuildPhaseError,
    BuildProgressEvent,
    BuildResult,
    BuildState,
    PipelineContext,
    PipelineHalted,
    PipelineState,
)
from .executor import BuildExecutor
from .output_validator import BuildOutputValidator, OutputValidation
from .collector import FileCollector, FileInfo, get_file_size_info, match_pattern
from .archiver import (
    ArchiveBuilder,
    ArchiveError,
    ArchivePlan,
    ArchiveStrategy,
    ArchiveStrategyFactory,
    TarArchiveStrategy,
    TarGzArchiveStrategy,
    ZipArchiveStrategy,
    estimate_compressed_size,
)
from .pipeline import PackagingPipeline, PipelineDecisions, PipelineResult, run_pipeline, upload

__all__ = [
    # 进度与结果
    "ArchiveProgressEvent",
    "BuildProgressEvent",
    "BuildPhase",
    "BuildState",
    "BuildResult",
    "PipelineContext",
    "PipelineState",

    # 异常
    "BuildError",
    "BuildPhaseError",
    "PipelineHalted",
    "ArchiveError",

    # 构建
    "BuildExecutor",
    "BuildOutputValidator",
    "OutputValidation",

    # 归档
    "FileCollector",
    "FileInfo",
    "get_file_size_info",
    "match_pattern",
    "ArchiveBuilder",
    "ArchivePlan",
    "ArchiveStrategy",
    "ArchiveStrategyFactory",
    "ZipArchiveStrategy",
    "TarGzArchiveStrategy",
    "TarArchiveStrategy",
    "estimate_compressed_size",

    # 流水线
    "PackagingPipeline",
    "PipelineDecisions",
    "PipelineResult",
    "run_pipeline",
    "upload",
]
