"""
Package 命令实现

构建项目并生成可部署的归档文件。
"""

import traceback
from pathlib import Path
from typing import Optional

import typer

from ...build.pipeline import PackagingPipeline
from .common import InteractiveDecisions, ProgressPrinter, console, print_result, setup_logging


def package_command(
    path: str = typer.Argument(".", help="项目目录"),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="归档输出路径，相对路径基于项目目录（默认 build.<格式>）"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="强制覆盖已存在的输出文件"),
    yes: bool = typer.Option(False, "--yes", "-y", help="所有确认都回答“是”"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="日志输出文件"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出详细调试日志并实时显示构建输出"),
) -> None:
    """构建并打包项目

    示例:
        kapsul package
        kapsul package ./my-app -o release.tar.gz
    """
    setup_logging(verbose, log_file)

    project_root = Path(path)
    if not project_root.is_dir():
        console.print(f"[red]项目目录不存在: {project_root}[/red]")
        raise typer.Exit(1)

    output_path = Path(output) if output else None
    pipeline = PackagingPipeline(project_root, decisions=InteractiveDecisions(assume_yes=yes))

    # 相对路径按项目根目录解析，与归档步骤一致
    target = pipeline.resolve_output_path(output_path)
    if target is not None and target.exists() and not force:
        console.print(f"[red]输出文件已存在: {target}[/red]")
        console.print("使用 --force 参数强制覆盖")
        raise typer.Exit(1)
    printer = ProgressPrinter(show_output=verbose)

    try:
        result = pipeline.run(output_path=output_path, on_progress=printer)
    except Exception as e:
        console.print(f"[red]✗ 打包过程中发生意外错误[/red]: {e}")
        if log_file:
            console.print(f"[yellow]详细错误信息:[/yellow]\n{traceback.format_exc()}")
        raise typer.Exit(1)
    finally:
        printer.close()

    print_result(result)
    if result.archive_oversized:
        console.print("[yellow]归档超过 50 MB，请检查 exclude 配置[/yellow]")
    if not result.success:
        raise typer.Exit(1)
