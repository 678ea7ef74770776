"""
Validate 命令实现

校验覆盖配置文件和合并后的有效配置。
"""

import json
from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from ...config.loader import ConfigError, ConfigValidationError
from ...config.resolver import BuildConfigResolver
from .common import console


def validate_command(
    path: str = typer.Argument(".", help="项目目录"),
    json_output: bool = typer.Option(False, "--json", help="输出 JSON 格式的校验结果"),
) -> None:
    """校验构建配置

    检查构建命令、输出目录和压缩格式。

    示例:
        kapsul validate
        kapsul validate ./my-app --json
    """
    project_root = Path(path)
    if not project_root.is_dir():
        console.print(f"[red]项目目录不存在: {project_root}[/red]")
        raise typer.Exit(1)

    resolver = BuildConfigResolver(project_root)
    config_path = resolver.get_override_path()
    errors = []

    # 覆盖文件本身的语法/字段错误
    if config_path.is_file():
        try:
            resolver.loader.load_from_file(config_path)
        except ConfigValidationError as e:
            errors.extend(e.messages)
        except ConfigError as e:
            errors.append(str(e))

    project_type = resolver.inspector.detect_project_type()
    package_manager = resolver.package_managers.detect_package_manager()

    if not errors:
        config = resolver.resolve_effective_config(project_type, package_manager)
        errors.extend(resolver.validate(config).errors)

    if json_output:
        data = {
            "file": str(config_path) if config_path.is_file() else None,
            "projectType": project_type.value,
            "valid": not errors,
            "errors": errors,
        }
        console.print_json(json.dumps(data, ensure_ascii=False))
        if errors:
            raise typer.Exit(1)
        return

    if config_path.is_file():
        console.print(f"正在校验配置文件: [cyan]{config_path}[/cyan]")
    else:
        console.print(f"未找到 {config_path.name}，校验默认配置 ([cyan]{project_type.value}[/cyan])")

    if not errors:
        console.print("[green]✓ 构建配置校验通过[/green]")
        return

    table = Table(title=f"校验错误 ({len(errors)})")
    table.add_column("#", style="cyan", no_wrap=True)
    table.add_column("错误信息", style="red")
    for index, message in enumerate(errors, 1):
        table.add_row(str(index), escape(message))
    console.print(table)
    raise typer.Exit(1)
