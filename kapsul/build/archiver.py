"""
归档器抽象接口和实现

根据归档计划收集项目文件并写入 zip / tar.gz / tar 归档。
所有策略先写入 .partial 文件，成功后原子重命名为最终文件。
"""

import gzip
import os
import shutil
import tarfile
import tempfile
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Type, Union

from ..config.defaults import LARGE_ARCHIVE_THRESHOLD, default_compression_format
from ..config.schema import BuildConfig, CompressionFormat, ProjectType
from ..utils.logging import LogStage, debug, info, success, warning
from ..utils.paths import ensure_directory, format_size
from .build_context import ArchiveProgressEvent
from .collector import FileCollector, FileInfo, get_file_size_info


PARTIAL_SUFFIX = ".partial"
CHUNK_SIZE = 64 * 1024

# 各格式的典型压缩率，用于预估归档大小
COMPRESSION_RATIOS: Dict[CompressionFormat, float] = {
    CompressionFormat.ZIP: 0.4,
    CompressionFormat.TAR_GZ: 0.3,
    CompressionFormat.TAR: 0.9,
}

ArchiveProgressCallback = Callable[[ArchiveProgressEvent], None]


class ArchiveError(Exception):
    """归档相关错误"""
    pass


@dataclass
class ArchivePlan:
    """归档计划，在归档前由有效配置计算得出"""
    format: CompressionFormat
    output_path: Path
    resolved_excludes: List[str] = field(default_factory=list)
    resolved_includes: List[str] = field(default_factory=list)
    compression_level: int = 9

    @property
    def partial_path(self) -> Path:
        return self.output_path.with_name(self.output_path.name + PARTIAL_SUFFIX)

    @classmethod
    def from_config(
        cls,
        config: BuildConfig,
        project_type: ProjectType,
        project_root: Union[str, Path],
        output_path: Optional[Union[str, Path]] = None,
    ) -> "ArchivePlan":
        """由有效配置计算归档计划

        Args:
            config: 有效构建配置
            project_type: 项目类型（决定默认压缩格式）
            project_root: 项目根目录
            output_path: 归档输出路径，默认 <project_root>/build.<ext>

        Raises:
            ArchiveError: 配置中的压缩格式无法识别
        """
        fmt = default_compression_format(project_type)
        if config.compression_format:
            parsed = config.get_compression_format()
            if parsed is None:
                raise ArchiveError(f"不支持的压缩格式: {config.compression_format}")
            fmt = parsed

        root = Path(project_root)
        if output_path is None:
            target = root / f"build.{fmt.extension}"
        else:
            target = Path(output_path)
            if not target.is_absolute():
                target = root / target

        return cls(
            format=fmt,
            output_path=target,
            resolved_excludes=list(config.exclude),
            resolved_includes=list(config.include),
            compression_level=config.compression_level,
        )


class ProgressTracker:
    """累计归档进度，超过大小阈值时只提示一次"""

    def __init__(
        self,
        bytes_total: Optional[int] = None,
        on_progress: Optional[ArchiveProgressCallback] = None,
        threshold: int = LARGE_ARCHIVE_THRESHOLD,
    ):
        self.bytes_total = bytes_total
        self.on_progress = on_progress
        self.threshold = threshold
        self.entries_processed = 0
        self.bytes_processed = 0
        self.oversized = False

    def advance(self, entries: int = 0, nbytes: int = 0) -> None:
        self.entries_processed += entries
        self.bytes_processed += nbytes

        if not self.oversized and self.bytes_processed > self.threshold:
            self.oversized = True
            warning(
                f"归档内容超过 {format_size(self.threshold)}，上传可能较慢，"
                "请检查排除规则是否遗漏了大目录",
                stage=LogStage.ARCHIVE,
            )

        if self.on_progress:
            self.on_progress(ArchiveProgressEvent(
                entries_processed=self.entries_processed,
                bytes_processed=self.bytes_processed,
                bytes_total=self.bytes_total,
            ))


class ArchiveStrategy(ABC):
    """归档策略抽象基类"""

    def __init__(self, level: int = 9):
        self.level = min(9, max(0, level))

    @abstractmethod
    def get_format(self) -> CompressionFormat:
        """获取归档格式"""
        pass

    @abstractmethod
    def write(self, files: List[FileInfo], target: Path, tracker: ProgressTracker) -> None:
        """把文件写入目标路径

        Args:
            files: 要归档的文件列表
            target: 目标文件（通常是 .partial 文件）
            tracker: 进度跟踪器

        Raises:
            ArchiveError: 归档失败
        """
        pass


class ZipArchiveStrategy(ArchiveStrategy):
    """Zip 归档（deflate，级别 0 时仅存储）"""

    def get_format(self) -> CompressionFormat:
        return CompressionFormat.ZIP

    def write(self, files: List[FileInfo], target: Path, tracker: ProgressTracker) -> None:
        compression = zipfile.ZIP_DEFLATED if self.level > 0 else zipfile.ZIP_STORED
        try:
            # 1980 年以前的修改时间按 1980-01-01 写入
            with zipfile.ZipFile(
                target, 'w', compression, compresslevel=self.level, strict_timestamps=False
            ) as zf:
                for file_info in files:
                    zf.write(file_info.path, file_info.archive_name)
                    tracker.advance(entries=1, nbytes=file_info.size)
        except (OSError, ValueError, zipfile.BadZipFile) as e:
            raise ArchiveError(f"Zip 归档失败: {e}") from e


class TarArchiveStrategy(ArchiveStrategy):
    """不压缩的 tar 归档"""

    def get_format(self) -> CompressionFormat:
        return CompressionFormat.TAR

    def write(self, files: List[FileInfo], target: Path, tracker: ProgressTracker) -> None:
        try:
            with tarfile.open(target, 'w') as tf:
                for file_info in files:
                    tf.add(str(file_info.path), arcname=file_info.archive_name, recursive=False)
                    tracker.advance(entries=1, nbytes=file_info.size)
        except (OSError, tarfile.TarError) as e:
            raise ArchiveError(f"Tar 归档失败: {e}") from e


class TarGzArchiveStrategy(ArchiveStrategy):
    """tar.gz 归档

    先写出未压缩的临时 tar，再流式 gzip 到目标文件，临时文件总是被删除。
    """

    def get_format(self) -> CompressionFormat:
        return CompressionFormat.TAR_GZ

    def write(self, files: List[FileInfo], target: Path, tracker: ProgressTracker) -> None:
        fd, temp_name = tempfile.mkstemp(prefix=".kapsul-", suffix=".tar", dir=str(target.parent))
        os.close(fd)
        temp_tar = Path(temp_name)

        try:
            TarArchiveStrategy(self.level).write(files, temp_tar, tracker)
            debug(f"临时 tar 已生成: {format_size(temp_tar.stat().st_size)}", stage=LogStage.ARCHIVE)

            with open(temp_tar, 'rb') as src, gzip.open(target, 'wb', compresslevel=self.level) as dst:
                shutil.copyfileobj(src, dst, CHUNK_SIZE)
        except OSError as e:
            raise ArchiveError(f"tar.gz 归档失败: {e}") from e
        finally:
            if temp_tar.exists():
                temp_tar.unlink()


class ArchiveStrategyFactory:
    """归档策略工厂"""

    _strategies: Dict[CompressionFormat, Type[ArchiveStrategy]] = {
        CompressionFormat.ZIP: ZipArchiveStrategy,
        CompressionFormat.TAR_GZ: TarGzArchiveStrategy,
        CompressionFormat.TAR: TarArchiveStrategy,
    }

    @classmethod
    def create_strategy(cls, fmt: CompressionFormat, level: int = 9) -> ArchiveStrategy:
        """创建归档策略

        Raises:
            ArchiveError: 不支持的格式
        """
        strategy_cls = cls._strategies.get(fmt)
        if strategy_cls is None:
            raise ArchiveError(f"不支持的压缩格式: {fmt}")
        return strategy_cls(level)

    @classmethod
    def get_supported_formats(cls) -> List[CompressionFormat]:
        return list(cls._strategies)


class ArchiveBuilder:
    """归档构建器

    Args:
        project_root: 项目根目录
        on_progress: 归档进度回调
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        on_progress: Optional[ArchiveProgressCallback] = None,
    ):
        self.project_root = Path(project_root)
        self.on_progress = on_progress
        self.collector = FileCollector(self.project_root)
        self.oversized = False
        self.files: List[FileInfo] = []

    def collect(self, plan: ArchivePlan) -> List[FileInfo]:
        """按计划收集文件，归档文件自身和临时文件总是被排除"""
        self.files = self.collector.collect_files(
            exclude=plan.resolved_excludes,
            include=plan.resolved_includes,
            skip_paths=[plan.output_path, plan.partial_path],
        )
        return self.files

    def build(self, plan: ArchivePlan) -> Path:
        """构建归档

        Returns:
            Path: 最终归档路径

        Raises:
            ArchiveError: 收集或写入失败（.partial 文件已被清理）
        """
        files = self.collect(plan)
        stats = self.collector.get_statistics()
        info(
            f"归档 {stats['total_files']} 个文件 ({format_size(stats['total_size'])}) -> "
            f"{plan.output_path.name} [{plan.format.value}]",
            stage=LogStage.ARCHIVE,
        )

        strategy = ArchiveStrategyFactory.create_strategy(plan.format, plan.compression_level)
        tracker = ProgressTracker(bytes_total=stats['total_size'], on_progress=self.on_progress)
        partial = plan.partial_path

        try:
            ensure_directory(plan.output_path.parent)
            strategy.write(files, partial, tracker)
            os.replace(partial, plan.output_path)
        except OSError as e:
            raise ArchiveError(f"写入归档失败: {e}") from e
        finally:
            if partial.exists():
                partial.unlink()

        self.oversized = tracker.oversized
        size = plan.output_path.stat().st_size
        success(f"归档完成: {plan.output_path} ({format_size(size)})", stage=LogStage.ARCHIVE)
        return plan.output_path


def estimate_compressed_size(
    project_root: Union[str, Path],
    fmt: Union[CompressionFormat, str] = CompressionFormat.ZIP,
) -> int:
    """按典型压缩率预估归档大小（不含 node_modules）"""
    if not isinstance(fmt, CompressionFormat):
        fmt = CompressionFormat.parse(fmt) or CompressionFormat.ZIP
    total = get_file_size_info(project_root)['total_size']
    return int(total * COMPRESSION_RATIOS.get(fmt, 0.5))
