"""
各项目类型的内置构建默认值
"""

from dataclasses import dataclass, field
from typing import Dict, List

from .schema import CompressionFormat, ProjectType


OVERRIDE_CONFIG_FILE = ".kapsul.build.json"

# 50 MiB，超过后提示归档过大
LARGE_ARCHIVE_THRESHOLD = 50 * 1024 * 1024

DEFAULT_EXCLUDE_PATTERNS = [
    "node_modules",
    ".git",
    ".github",
    "coverage",
    "tests",
    "test",
    "*.log",
]

# 生成覆盖配置文件时使用的排除模式
SEED_EXCLUDE_PATTERNS = ["node_modules", ".git"]


@dataclass(frozen=True)
class ProjectDefaults:
    """单个项目类型的默认构建设置"""
    output_dir: str
    required_deps: List[str] = field(default_factory=list)
    config_files: List[str] = field(default_factory=list)
    environment_vars: List[str] = field(default_factory=lambda: ["NODE_ENV"])
    success_indicators: List[str] = field(default_factory=list)
    compression_format: CompressionFormat = CompressionFormat.ZIP


PROJECT_DEFAULTS: Dict[ProjectType, ProjectDefaults] = {
    ProjectType.NEXT: ProjectDefaults(
        output_dir=".next",
        required_deps=["next"],
        config_files=["next.config.js", "next.config.ts", "next.config.mjs"],
        environment_vars=["NODE_ENV", "NEXT_PUBLIC_"],
        success_indicators=[".next/build-manifest.json"],
        compression_format=CompressionFormat.ZIP,
    ),
    ProjectType.EXPRESS: ProjectDefaults(
        output_dir="dist",
        required_deps=["express"],
        config_files=["tsconfig.json"],
        environment_vars=["NODE_ENV", "PORT"],
        success_indicators=["dist/index.js", "dist/server.js", "dist/app.js"],
        compression_format=CompressionFormat.TAR_GZ,
    ),
    ProjectType.NODE: ProjectDefaults(
        output_dir="dist",
        config_files=["tsconfig.json"],
        success_indicators=["dist/index.js", "dist/main.js"],
        compression_format=CompressionFormat.TAR_GZ,
    ),
}

FALLBACK_DEFAULTS = ProjectDefaults(output_dir="dist")


def get_project_defaults(project_type: ProjectType) -> ProjectDefaults:
    """获取项目类型的默认设置，未知类型使用通用默认值"""
    return PROJECT_DEFAULTS.get(project_type, FALLBACK_DEFAULTS)


def default_compression_format(project_type: ProjectType) -> CompressionFormat:
    """node/express 倾向压缩率（tar.gz），其余倾向工具兼容性（zip）"""
    return get_project_defaults(project_type).compression_format
