"""
构建上下文模块

定义构建过程中的进度事件、构建结果、流水线共享数据和异常类。
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ..config.schema import BuildConfig, PackageManagerKind, ProjectType


class BuildPhase(str, Enum):
    """构建阶段"""
    PRE_BUILD = "pre_build"
    BUILD = "build"
    POST_BUILD = "post_build"


class BuildState(str, Enum):
    """阶段内的事件类型"""
    RUNNING = "running"
    OUTPUT_CHUNK = "output_chunk"
    ERROR_CHUNK = "error_chunk"
    COMPLETE = "complete"


@dataclass(frozen=True)
class BuildProgressEvent:
    """构建进度事件"""
    phase: BuildPhase
    state: BuildState
    text: Optional[str] = None
    command: Optional[str] = None


@dataclass(frozen=True)
class ArchiveProgressEvent:
    """归档进度事件"""
    entries_processed: int
    bytes_processed: int
    bytes_total: Optional[int] = None


ProgressEvent = Union[BuildProgressEvent, ArchiveProgressEvent]

# 进度回调类型
ProgressCallback = Callable[[ProgressEvent], None]


@dataclass(frozen=True)
class BuildResult:
    """构建结果，子进程结束后不再变化"""
    success: bool
    exit_code: Optional[int]
    combined_output: str
    command_used: str
    failed_phase: Optional[BuildPhase] = None
    duration: float = 0.0


class BuildError(Exception):
    """构建错误"""
    pass


class BuildPhaseError(BuildError):
    """构建前/构建后命令失败

    Attributes:
        phase: 失败的阶段
        command: 失败的命令
        exit_code: 失败命令的退出码，无法启动时为 None
        result: 截至失败时的构建结果
    """

    def __init__(self, phase: BuildPhase, command: str, exit_code: Optional[int], result: BuildResult):
        super().__init__(f"{phase.value} 命令失败 (退出码 {exit_code}): {command}")
        self.phase = phase
        self.command = command
        self.exit_code = exit_code
        self.result = result


class PipelineState(str, Enum):
    """打包流水线状态"""
    IDLE = "idle"
    INSPECTING = "inspecting"
    CONFIG_RESOLVED = "config_resolved"
    BUILDING = "building"
    VALIDATING = "validating"
    ARCHIVING = "archiving"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PipelineContext:
    """流水线上下文，包含各步骤共享的数据"""
    project_root: Path
    output_path: Optional[Path] = None
    progress_callback: Optional[ProgressCallback] = None

    state: PipelineState = PipelineState.IDLE

    # 各步骤产生的数据
    project_type: Optional[ProjectType] = None
    package_manager: Optional[PackageManagerKind] = None
    config: Optional[BuildConfig] = None
    build_result: Optional[BuildResult] = None
    build_skipped: bool = False
    no_build_step: bool = False
    validation_messages: List[str] = field(default_factory=list)
    artifact_path: Optional[Path] = None
    archive_oversized: bool = False

    messages: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)

    def emit(self, event: ProgressEvent) -> None:
        if self.progress_callback:
            self.progress_callback(event)


class PipelineHalted(Exception):
    """流水线按调用方决定或校验结果在某个状态停止"""

    def __init__(self, state: PipelineState, message: str):
        super().__init__(message)
        self.state = state
