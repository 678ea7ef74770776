"""
配置加载器

负责读取和写入项目内的覆盖配置文件（JSON）。
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError

from ..utils.logging import LogStage, debug, warning
from .defaults import OVERRIDE_CONFIG_FILE
from .schema import BuildConfig


class ConfigError(Exception):
    """配置错误基类"""
    pass


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def __init__(self, message: str, errors: List[Dict[str, Any]]):
        super().__init__(message)
        self.errors = errors

    @property
    def messages(self) -> List[str]:
        """人类可读的错误消息列表"""
        formatted = []
        for error in self.errors:
            loc = " -> ".join(str(item) for item in error.get('loc', []))
            msg = error.get('msg', '未知错误')
            if loc:
                formatted.append(f"字段 '{loc}': {msg}")
            else:
                formatted.append(msg)
        return formatted

    def format_errors(self) -> str:
        """格式化错误信息为多行文本"""
        return "\n".join(self.messages)


@dataclass
class ValidationResult:
    """配置验证结果"""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    config: Optional[BuildConfig] = None

    def raise_for_errors(self) -> None:
        if not self.is_valid:
            raise ConfigValidationError(
                "构建配置验证失败",
                [{'loc': [], 'msg': message} for message in self.errors],
            )


class ConfigLoader:
    """覆盖配置加载器

    Args:
        file_name: 项目根目录下的覆盖配置文件名
        override_path: 固定的覆盖配置路径（设置后忽略项目根目录）
    """

    def __init__(self, file_name: str = OVERRIDE_CONFIG_FILE, override_path: Optional[Union[str, Path]] = None):
        self.file_name = file_name
        self.override_path = Path(override_path) if override_path is not None else None

    def get_override_path(self, project_root: Union[str, Path]) -> Path:
        """覆盖配置文件的位置"""
        if self.override_path is not None:
            return self.override_path
        return Path(project_root) / self.file_name

    def has_override(self, project_root: Union[str, Path]) -> bool:
        return self.get_override_path(project_root).is_file()

    def load_from_file(self, config_path: Union[str, Path]) -> BuildConfig:
        """从文件加载配置

        Args:
            config_path: 配置文件路径

        Returns:
            BuildConfig: 验证后的配置实例

        Raises:
            ConfigError: 配置加载或验证错误
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigError(f"配置文件不存在: {config_path}")

        if not config_path.is_file():
            raise ConfigError(f"配置路径不是文件: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                raw_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"JSON 解析错误: {e}") from e
        except OSError as e:
            raise ConfigError(f"文件读取错误: {e}") from e

        if not isinstance(raw_data, dict):
            raise ConfigError("配置文件根级别必须是对象格式")

        return self.load_from_dict(raw_data)

    def load_from_dict(self, data: Dict[str, Any]) -> BuildConfig:
        """从字典加载配置

        Raises:
            ConfigValidationError: 配置验证错误
        """
        try:
            return BuildConfig.from_dict(data)
        except ValidationError as e:
            raise ConfigValidationError("配置验证失败", list(e.errors())) from e

    def load_override(self, project_root: Union[str, Path]) -> Optional[BuildConfig]:
        """加载项目覆盖配置

        文件不存在或无法解析时返回 None，解析失败只记录警告。
        """
        override_path = self.get_override_path(project_root)
        if not override_path.is_file():
            return None

        try:
            config = self.load_from_file(override_path)
        except ConfigValidationError as e:
            warning(f"覆盖配置无效，已忽略: {override_path}", stage=LogStage.CONFIG)
            for message in e.messages:
                warning(f"  {message}", stage=LogStage.CONFIG)
            return None
        except ConfigError as e:
            warning(f"无法加载覆盖配置 {override_path}: {e}", stage=LogStage.CONFIG)
            return None

        debug(f"已加载覆盖配置: {override_path}", stage=LogStage.CONFIG)
        return config

    def save_to_file(
        self,
        config: BuildConfig,
        output_path: Union[str, Path],
        overwrite: bool = False,
    ) -> Path:
        """保存配置到文件

        Args:
            config: 配置实例
            output_path: 输出文件路径
            overwrite: 文件已存在时是否覆盖

        Raises:
            ConfigError: 文件已存在且未允许覆盖，或写入失败
        """
        output_path = Path(output_path)

        if output_path.exists() and not overwrite:
            raise ConfigError(f"配置文件已存在: {output_path}")

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            with open(output_path, 'w', encoding='utf-8') as f:
                json.dump(config.to_dict(), f, ensure_ascii=False, indent=2)
                f.write("\n")
        except OSError as e:
            raise ConfigError(f"保存配置文件失败: {e}") from e

        return output_path


# 全局加载器实例
config_loader = ConfigLoader()
