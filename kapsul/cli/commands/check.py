"""
Check 命令实现

构建前检查：依赖声明、配置文件、环境变量和构建命令。
"""

from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from ...config.resolver import BuildConfigResolver
from .common import console


def check_command(
    path: str = typer.Argument(".", help="项目目录"),
) -> None:
    """检查项目是否可以构建

    只有缺少依赖或构建步骤时返回非零退出码，环境变量和配置文件问题只作提示。
    """
    project_root = Path(path)
    if not project_root.is_dir():
        console.print(f"[red]项目目录不存在: {project_root}[/red]")
        raise typer.Exit(1)

    resolver = BuildConfigResolver(project_root)
    project_type = resolver.inspector.detect_project_type()
    package_manager = resolver.package_managers.detect_package_manager()
    config = resolver.resolve_effective_config(project_type, package_manager)

    console.print(
        f"项目类型: [cyan]{project_type.value}[/cyan]  包管理器: [cyan]{package_manager.value}[/cyan]"
    )

    table = Table(title="构建前检查")
    table.add_column("检查项", style="cyan")
    table.add_column("状态")
    table.add_column("说明")

    failed = False

    deps = resolver.check_required_dependencies(project_type)
    failed = failed or not deps.success
    table.add_row("依赖", _status(deps.success), escape(deps.message))

    files = resolver.check_config_files(project_type)
    table.add_row("配置文件", _status(files.success, warn=True), escape(files.message))

    missing_vars = resolver.missing_environment_vars(config)
    env_message = f"未设置: {', '.join(missing_vars)}" if missing_vars else "已设置"
    table.add_row("环境变量", _status(not missing_vars, warn=True), escape(env_message))

    has_build = resolver.has_build_command(project_type, package_manager, config)
    failed = failed or not has_build
    build_message = config.build_command if has_build else resolver.suggest_build_command(project_type, package_manager)
    table.add_row("构建命令", _status(has_build), escape(build_message))

    console.print(table)

    if failed:
        raise typer.Exit(1)


def _status(ok: bool, warn: bool = False) -> str:
    if ok:
        return "[green]✓[/green]"
    return "[yellow]![/yellow]" if warn else "[red]✗[/red]"
