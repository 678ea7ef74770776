"""
CLI 命令共享工具

日志初始化、交互式决策和进度显示。
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.status import Status

from ...build.build_context import (
    ArchiveProgressEvent,
    BuildProgressEvent,
    BuildResult,
    BuildState,
    ProgressEvent,
)
from ...build.pipeline import PipelineResult
from ...build.steps import PipelineDecisions
from ...utils.logging import OutputLevel, set_log_file, set_log_level
from ...utils.paths import format_size


console = Console()

# 构建失败时展示的输出行数
OUTPUT_TAIL_LINES = 20


def setup_logging(verbose: bool, log_file: Optional[str]) -> None:
    """初始化日志：在任何输出前设置"""
    set_log_level(OutputLevel.DEBUG if verbose else OutputLevel.INFO)
    if log_file:
        set_log_file(log_file)


class InteractiveDecisions(PipelineDecisions):
    """在决策点询问用户

    Args:
        assume_yes: 所有决策点都回答“继续”，不再询问
    """

    def __init__(self, assume_yes: bool = False):
        super().__init__(
            continue_without_build=assume_yes,
            continue_on_build_failure=assume_yes,
            continue_on_missing_output=True,
        )
        self.assume_yes = assume_yes

    def continue_without_build(self) -> bool:
        if self.assume_yes:
            return True
        return typer.confirm("未找到构建步骤，是否直接打包项目文件?", default=False)

    def continue_after_build_failure(self, result: BuildResult, messages: List[str]) -> bool:
        tail = result.combined_output.strip().splitlines()[-OUTPUT_TAIL_LINES:]
        if tail:
            console.print("[red]构建输出（末尾）:[/red]")
            for line in tail:
                console.print(f"  [dim]{escape(line)}[/dim]")
        for message in messages:
            console.print(f"  [yellow]• {escape(message)}[/yellow]")

        if self.assume_yes:
            return True
        return typer.confirm("构建失败，是否仍然继续打包?", default=False)

    def continue_without_output_dir(self, path: Path) -> bool:
        if self.assume_yes:
            return True
        return typer.confirm(f"输出目录 {path} 不存在，是否继续?", default=True)


class ProgressPrinter:
    """把流水线进度事件显示到控制台

    归档进度显示在 rich 状态指示器中，收到第一个归档事件时启动。

    Args:
        show_output: 是否实时显示构建输出
    """

    def __init__(self, show_output: bool = False):
        self.show_output = show_output
        self.status: Optional[Status] = None

    def __call__(self, event: ProgressEvent) -> None:
        if isinstance(event, BuildProgressEvent):
            self._on_build(event)
        elif isinstance(event, ArchiveProgressEvent):
            self._on_archive(event)

    def _on_build(self, event: BuildProgressEvent) -> None:
        phase = event.phase.value
        if event.state == BuildState.RUNNING:
            command = f": {escape(event.command)}" if event.command else ""
            console.print(f"[cyan]▶ {phase}{command}[/cyan]")
        elif event.state == BuildState.COMPLETE:
            console.print(f"[green]✓ {phase} 完成[/green]")
        elif self.show_output and event.text:
            style = "dim" if event.state == BuildState.OUTPUT_CHUNK else "yellow"
            console.print(f"[{style}]{escape(event.text.rstrip())}[/{style}]")

    def _on_archive(self, event: ArchiveProgressEvent) -> None:
        if self.status is None:
            self.status = console.status("归档中...")
            self.status.start()
        total = f" / {format_size(event.bytes_total)}" if event.bytes_total else ""
        self.status.update(
            f"归档中... {event.entries_processed} 个文件 ({format_size(event.bytes_processed)}{total})"
        )

    def close(self) -> None:
        if self.status is not None:
            self.status.stop()
            self.status = None


def print_result(result: PipelineResult) -> None:
    """显示流水线结果摘要"""
    for message in result.warnings:
        console.print(f"[yellow]! {escape(message)}[/yellow]")

    if result.success:
        if result.artifact_path:
            console.print(f"[green]✓ 打包完成[/green]: {escape(str(result.artifact_path))}")
            size = result.stats.get('archive_size')
            if size is not None:
                console.print(f"[blue]文件大小[/blue]: {format_size(size)}")
        else:
            console.print("[green]✓ 构建完成[/green]")
        return

    console.print(f"[red]✗ 失败[/red] (状态: {result.state.value})")
    for message in result.messages:
        console.print(f"  [red]• {escape(message)}[/red]")
