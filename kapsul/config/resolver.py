"""
构建配置解析器

将项目类型对应的内置默认值与项目内的覆盖配置合并为一份有效配置，并负责校验。
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

from ..project.inspector import DetectionError, ProjectInspector
from ..project.package_manager import (
    PackageManagerResolver,
    format_command,
    get_build_command,
    get_exec_command,
    get_run_command,
    is_command_available,
)
from ..utils.logging import LogStage, debug, info
from .defaults import (
    DEFAULT_EXCLUDE_PATTERNS,
    SEED_EXCLUDE_PATTERNS,
    get_project_defaults,
)
from .loader import ConfigLoader, ValidationResult, config_loader
from .schema import (
    SUPPORTED_COMPRESSION_FORMATS,
    BuildConfig,
    CompressionFormat,
    PackageManagerKind,
    ProjectType,
)


# 合并时取并集的字段
UNION_FIELDS = ("environment_vars", "success_indicators")

# 纯 JavaScript 项目依次尝试的脚本
JS_BUILD_SCRIPTS = ("build", "compile", "bundle")


@dataclass
class CheckResult:
    """依赖/配置文件检查结果"""
    success: bool
    missing: List[str] = field(default_factory=list)
    message: str = ""


def _is_supplied(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


class BuildConfigResolver:
    """构建配置解析器

    Args:
        project_root: 项目根目录
        inspector: 项目检查器（可选，默认按 project_root 创建）
        package_managers: 包管理器解析器（可选）
        loader: 覆盖配置加载器（可选）
    """

    def __init__(
        self,
        project_root: Union[str, Path] = ".",
        inspector: Optional[ProjectInspector] = None,
        package_managers: Optional[PackageManagerResolver] = None,
        loader: Optional[ConfigLoader] = None,
    ):
        self.project_root = Path(project_root)
        self.inspector = inspector or ProjectInspector(self.project_root)
        self.package_managers = package_managers or PackageManagerResolver(self.project_root, self.inspector)
        self.loader = loader or config_loader

    def get_override_path(self) -> Path:
        return self.loader.get_override_path(self.project_root)

    def has_override(self) -> bool:
        return self.loader.has_override(self.project_root)

    def load_override(self) -> Optional[BuildConfig]:
        return self.loader.load_override(self.project_root)

    def resolve_build_command(self, project_type: ProjectType, package_manager: PackageManagerKind) -> str:
        """计算默认构建命令（不考虑覆盖配置）"""
        has_script = self.package_managers.has_script

        if has_script("build"):
            return format_command(get_build_command(package_manager))

        if project_type == ProjectType.NEXT:
            return format_command(get_exec_command(package_manager, "next", "build"))

        if self.inspector.is_typescript_project():
            if has_script("tsc"):
                return format_command(get_run_command(package_manager, "tsc"))
            return format_command(get_exec_command(package_manager, "tsc"))

        if project_type in (ProjectType.EXPRESS, ProjectType.NODE):
            for script in JS_BUILD_SCRIPTS:
                if has_script(script):
                    return format_command(get_run_command(package_manager, script))

        return format_command(get_build_command(package_manager))

    def get_output_directory(self, project_type: ProjectType) -> str:
        """期望的输出目录，TypeScript 项目优先使用 tsconfig 中的 outDir"""
        if self.inspector.is_typescript_project():
            out_dir = self.inspector.get_typescript_out_dir()
            if out_dir:
                return out_dir
        return get_project_defaults(project_type).output_dir

    def get_default_config(self, project_type: ProjectType, package_manager: PackageManagerKind) -> BuildConfig:
        """项目类型对应的内置默认配置"""
        defaults = get_project_defaults(project_type)
        config = BuildConfig(
            build_command=self.resolve_build_command(project_type, package_manager),
            output_dir=self.get_output_directory(project_type),
            environment_vars=list(defaults.environment_vars),
            success_indicators=list(defaults.success_indicators),
            exclude=list(DEFAULT_EXCLUDE_PATTERNS),
            include=[],
            compression_format=defaults.compression_format.value,
        )
        config.mark_declared(frozenset())
        return config

    @staticmethod
    def merge(default: BuildConfig, override: Optional[BuildConfig]) -> BuildConfig:
        """按字段合并默认配置与覆盖配置

        覆盖配置中提供的字段优先；environmentVars/successIndicators 取并集并去重；
        空字符串视为未提供。
        """
        if override is None:
            return default

        supplied = frozenset(
            name for name in override.model_fields_set
            if _is_supplied(getattr(override, name))
        )

        values = default.model_dump()
        for name in supplied:
            if name in UNION_FIELDS:
                values[name] = list(getattr(default, name)) + list(getattr(override, name))
            else:
                values[name] = getattr(override, name)

        merged = BuildConfig(**values)
        merged.mark_declared(supplied)
        return merged

    def resolve_effective_config(
        self,
        project_type: ProjectType,
        package_manager: PackageManagerKind,
    ) -> BuildConfig:
        """生成本次运行的有效构建配置"""
        default = self.get_default_config(project_type, package_manager)
        override = self.load_override()

        if override is None:
            debug("未发现覆盖配置，使用默认配置", stage=LogStage.CONFIG)
            return default

        info(f"使用覆盖配置: {self.get_override_path().name}", stage=LogStage.CONFIG)
        return self.merge(default, override)

    def validate(self, config: BuildConfig, check_output_dir: bool = True) -> ValidationResult:
        """校验有效配置

        检查项：构建命令非空；声明的输出目录存在；压缩格式合法。

        Args:
            config: 有效配置
            check_output_dir: 是否检查输出目录（构建前校验时关闭，由构建后的检查负责）
        """
        errors: List[str] = []

        if not config.build_command.strip():
            errors.append("未指定构建命令")

        if check_output_dir and "output_dir" in config.declared_fields and config.output_dir:
            if not (self.project_root / config.output_dir).exists():
                errors.append(f"输出目录 '{config.output_dir}' 不存在")

        if config.compression_format is not None and config.get_compression_format() is None:
            errors.append(
                f"不支持的压缩格式: {config.compression_format}，"
                f"支持的格式: {', '.join(SUPPORTED_COMPRESSION_FORMATS)}"
            )

        return ValidationResult(is_valid=not errors, errors=errors, config=config)

    def has_build_command(
        self,
        project_type: ProjectType,
        package_manager: PackageManagerKind,
        config: Optional[BuildConfig] = None,
    ) -> bool:
        """是否存在可执行的构建步骤"""
        if config is not None and "build_command" in config.declared_fields:
            return True

        if self.package_managers.has_script("build"):
            return True

        if project_type == ProjectType.NEXT:
            return self.package_managers.has_local_binary("next") or is_command_available("next")

        if self.inspector.is_typescript_project():
            return self.package_managers.has_local_binary("tsc") or is_command_available("tsc")

        if project_type in (ProjectType.EXPRESS, ProjectType.NODE):
            return any(self.package_managers.has_script(script) for script in JS_BUILD_SCRIPTS)

        return False

    def suggest_build_command(self, project_type: ProjectType, package_manager: PackageManagerKind) -> str:
        """没有构建命令时给出的建议"""
        if project_type == ProjectType.NEXT:
            return format_command(get_exec_command(package_manager, "next", "build"))

        if project_type in (ProjectType.EXPRESS, ProjectType.NODE):
            if self.inspector.is_typescript_project():
                return 'Add a build script to package.json:\n"build": "tsc"'
            return 'Add a build script to package.json:\n"build": "echo \'No build step required for pure JavaScript\'"'

        return 'Add a build script to package.json:\n"build": "your build command here"'

    def create_default(
        self,
        project_type: ProjectType,
        package_manager: Optional[PackageManagerKind] = None,
        overwrite: bool = False,
    ) -> Path:
        """生成项目覆盖配置文件

        Raises:
            ConfigError: 文件已存在且 overwrite 为 False
        """
        if package_manager is None:
            package_manager = self.package_managers.detect_package_manager()

        defaults = get_project_defaults(project_type)
        seed_format: Optional[str] = None
        if project_type in (ProjectType.NODE, ProjectType.EXPRESS):
            seed_format = CompressionFormat.TAR_GZ.value
        elif project_type == ProjectType.NEXT:
            seed_format = CompressionFormat.ZIP.value

        seed = BuildConfig(
            build_command=self.resolve_build_command(project_type, package_manager),
            output_dir=self.get_output_directory(project_type),
            environment_vars=list(defaults.environment_vars),
            success_indicators=list(defaults.success_indicators),
            exclude=list(SEED_EXCLUDE_PATTERNS),
            include=[],
            compression_format=seed_format,
        )
        return self.loader.save_to_file(seed, self.get_override_path(), overwrite=overwrite)

    def check_required_dependencies(self, project_type: ProjectType) -> CheckResult:
        """检查项目类型所需依赖是否已声明"""
        try:
            manifest = self.inspector.load_manifest()
        except DetectionError as e:
            return CheckResult(False, [], f"检查依赖时出错: {e}")

        if manifest is None:
            return CheckResult(False, [], "未找到 package.json")

        dependencies = self.inspector.get_dependencies(manifest)
        missing = [dep for dep in get_project_defaults(project_type).required_deps if dep not in dependencies]
        if missing:
            return CheckResult(False, missing, f"缺少必需依赖: {', '.join(missing)}")
        return CheckResult(True, [], "所需依赖均已声明")

    def check_config_files(self, project_type: ProjectType) -> CheckResult:
        """检查项目类型对应的配置文件是否存在（任意一个即可）"""
        config_files = get_project_defaults(project_type).config_files
        missing = self.inspector.list_missing_files(config_files)
        any_exists = len(missing) < len(config_files)

        if self.inspector.is_typescript_project() and not self.inspector.has_file("tsconfig.json"):
            if "tsconfig.json" not in missing:
                missing.append("tsconfig.json")

        if config_files and not any_exists:
            return CheckResult(False, missing, f"缺少配置文件: {', '.join(missing)}")
        return CheckResult(True, missing, "配置文件检查通过")

    @staticmethod
    def missing_environment_vars(
        config: BuildConfig,
        environ: Optional[Mapping[str, str]] = None,
    ) -> List[str]:
        """返回当前环境中未设置的环境变量名称

        以下划线结尾的条目视为前缀，只要存在任一匹配变量即可。
        """
        env: Mapping[str, str] = os.environ if environ is None else environ
        missing = []
        for name in config.environment_vars:
            if name.endswith("_"):
                if not any(key.startswith(name) for key in env):
                    missing.append(name)
            elif name not in env:
                missing.append(name)
        return missing

    def describe(self, config: BuildConfig) -> Dict[str, str]:
        """有效配置的简要描述（供 CLI 展示）"""
        return {
            "buildCommand": config.build_command or "-",
            "outputDir": config.output_dir or "-",
            "compressionFormat": config.compression_format or "-",
            "preBuildCommands": str(len(config.pre_build_commands)),
            "postBuildCommands": str(len(config.post_build_commands)),
        }
