"""
Kapsul CLI 主入口

提供命令行接口，支持 build/package/init/validate/check/info 等命令。
"""

import sys
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from .. import __version__
from ..build.archiver import ArchiveStrategyFactory, estimate_compressed_size
from ..build.collector import get_file_size_info
from ..config.defaults import default_compression_format
from ..config.resolver import BuildConfigResolver
from ..utils import configure_logging
from ..utils.paths import format_size
from .commands import build, check, init, package, validate
from .commands.common import console


# 创建主应用
app = typer.Typer(
    name="kapsul",
    help="Kapsul - 构建并打包 JavaScript/TypeScript 项目",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


# 全局选项
def version_callback(value: bool) -> None:
    """显示版本信息"""
    if value:
        console.print(f"Kapsul v{__version__}")
        raise typer.Exit()


def verbose_callback(verbose: bool) -> None:
    """配置详细输出"""
    configure_logging(level="DEBUG" if verbose else "INFO")


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="显示版本信息"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        callback=verbose_callback,
        help="启用详细输出"
    )
) -> None:
    """Kapsul - 构建并打包 JavaScript/TypeScript 项目

    使用 --help 查看可用命令的详细信息。
    """
    pass


# 注册子命令
app.command("build", help="构建项目")(build.build_command)
app.command("package", help="构建并打包项目")(package.package_command)
app.command("init", help="生成覆盖配置文件")(init.init_command)
app.command("validate", help="校验构建配置")(validate.validate_command)
app.command("check", help="构建前检查")(check.check_command)


@app.command("info")
def info_command(
    path: str = typer.Argument(".", help="项目目录"),
) -> None:
    """显示项目信息"""
    project_root = Path(path)
    if not project_root.is_dir():
        console.print(f"[red]项目目录不存在: {project_root}[/red]")
        raise typer.Exit(1)

    resolver = BuildConfigResolver(project_root)
    inspector = resolver.inspector
    project_type = inspector.detect_project_type()
    package_manager = resolver.package_managers.detect_package_manager()
    config = resolver.resolve_effective_config(project_type, package_manager)
    fmt = config.get_compression_format() or default_compression_format(project_type)

    table = Table(title="项目信息")
    table.add_column("项目", style="cyan")
    table.add_column("值", style="green")

    table.add_row("名称", inspector.get_project_name() or "-")
    table.add_row("版本", inspector.get_project_version() or "-")
    table.add_row("类型", project_type.value)
    table.add_row("包管理器", package_manager.value)
    table.add_row("模块格式", inspector.get_module_format())
    table.add_row("入口文件", inspector.get_entry_point() or "-")
    table.add_row("TypeScript", "是" if inspector.is_typescript_project() else "否")
    table.add_row("覆盖配置", "是" if resolver.has_override() else "否")
    for key, value in resolver.describe(config).items():
        table.add_row(key, value)

    size_info = get_file_size_info(project_root)
    table.add_row("项目大小", f"{size_info['formatted_size']} ({size_info['file_count']} 个文件)")
    table.add_row(f"预估归档大小 ({fmt.value})", format_size(estimate_compressed_size(project_root, fmt)))

    console.print(table)
    console.print()

    # 版本与支持的格式
    env_table = Table(title="版本信息")
    env_table.add_column("组件", style="cyan")
    env_table.add_column("版本", style="green")
    env_table.add_row("Kapsul", __version__)
    env_table.add_row("Python", f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
    env_table.add_row("压缩格式", ", ".join(f.value for f in ArchiveStrategyFactory.get_supported_formats()))
    console.print(env_table)


if __name__ == "__main__":
    app()
