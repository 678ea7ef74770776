"""
Build 命令实现

识别项目、解析配置并执行构建，不生成归档。
"""

import traceback
from pathlib import Path
from typing import Optional

import typer

from ...build.pipeline import PackagingPipeline
from .common import InteractiveDecisions, ProgressPrinter, console, print_result, setup_logging


def build_command(
    path: str = typer.Argument(".", help="项目目录"),
    yes: bool = typer.Option(False, "--yes", "-y", help="所有确认都回答“是”"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="日志输出文件"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出详细调试日志并实时显示构建输出"),
) -> None:
    """构建项目

    示例:
        kapsul build
        kapsul build ./my-app --verbose
    """
    setup_logging(verbose, log_file)

    project_root = Path(path)
    if not project_root.is_dir():
        console.print(f"[red]项目目录不存在: {project_root}[/red]")
        raise typer.Exit(1)

    pipeline = PackagingPipeline(project_root, decisions=InteractiveDecisions(assume_yes=yes))
    try:
        result = pipeline.run(on_progress=ProgressPrinter(show_output=verbose), archive=False)
    except Exception as e:
        console.print(f"[red]✗ 构建过程中发生意外错误[/red]: {e}")
        if log_file:
            console.print(f"[yellow]详细错误信息:[/yellow]\n{traceback.format_exc()}")
        raise typer.Exit(1)

    print_result(result)
    if not result.success:
        raise typer.Exit(1)
