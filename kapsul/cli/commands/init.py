"""
Init 命令实现

在项目根目录生成覆盖配置文件 .kapsul.build.json。
"""

from pathlib import Path
from typing import Optional

import typer

from ...config.loader import ConfigError
from ...config.resolver import BuildConfigResolver
from ...config.schema import ProjectType
from ...project.inspector import ProjectInspector
from .common import console


def init_command(
    path: str = typer.Argument(".", help="项目目录"),
    project_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="项目类型 (next/express/node)，默认自动识别"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="不询问直接覆盖已有配置"),
) -> None:
    """生成覆盖配置文件

    示例:
        kapsul init
        kapsul init ./my-app --type express
    """
    project_root = Path(path)
    if not project_root.is_dir():
        console.print(f"[red]项目目录不存在: {project_root}[/red]")
        raise typer.Exit(1)

    if project_type:
        try:
            kind = ProjectType(project_type.lower())
        except ValueError:
            console.print(f"[red]未知的项目类型: {project_type}[/red]")
            raise typer.Exit(1)
    else:
        kind = ProjectInspector(project_root).detect_project_type()

    resolver = BuildConfigResolver(project_root)
    config_path = resolver.get_override_path()

    overwrite = force
    if config_path.exists() and not force:
        overwrite = typer.confirm(f"{config_path.name} 已存在，是否覆盖?", default=False)
        if not overwrite:
            console.print("[yellow]已取消[/yellow]")
            return

    try:
        written = resolver.create_default(kind, overwrite=overwrite)
    except ConfigError as e:
        console.print(f"[red]生成配置失败: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ 已生成配置文件[/green]: {written}")
    console.print(f"[blue]项目类型[/blue]: {kind.value}")
    console.print("根据需要修改该文件，然后运行:")
    console.print("  [cyan]kapsul package[/cyan]")
