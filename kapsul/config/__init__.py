"""配置和 Schema 模块

提供构建配置模型、内置默认值以及覆盖配置文件的加载与保存。
配置解析器位于 kapsul.config.resolver。
"""

from .schema import (
    BuildConfig,
    CompressionFormat,
    PackageManagerKind,
    ProjectType,
    SUPPORTED_COMPRESSION_FORMATS,
)
from .defaults import (
    DEFAULT_EXCLUDE_PATTERNS,
    LARGE_ARCHIVE_THRESHOLD,
    OVERRIDE_CONFIG_FILE,
    get_project_defaults,
    default_compression_format,
)
from .loader import (
    ConfigLoader,
    ConfigError,
    ConfigValidationError,
    ValidationResult,
    config_loader,
)

__all__ = [
    # 模型
    "BuildConfig",
    "CompressionFormat",
    "PackageManagerKind",
    "ProjectType",
    "SUPPORTED_COMPRESSION_FORMATS",

    # 默认值
    "DEFAULT_EXCLUDE_PATTERNS",
    "LARGE_ARCHIVE_THRESHOLD",
    "OVERRIDE_CONFIG_FILE",
    "get_project_defaults",
    "default_compression_format",

    # 加载器与异常
    "ConfigLoader",
    "ConfigError",
    "ConfigValidationError",
    "ValidationResult",
    "config_loader",
]
