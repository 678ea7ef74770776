"""
配置 Schema 定义

使用 Pydantic 定义构建配置模型。覆盖配置文件为 JSON，字段使用 camelCase 命名。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field, PrivateAttr, field_validator


class ProjectType(str, Enum):
    """项目类型枚举"""
    NEXT = "next"
    EXPRESS = "express"
    NODE = "node"
    UNKNOWN = "unknown"


class PackageManagerKind(str, Enum):
    """包管理器枚举（顺序即探测优先级）"""
    PNPM = "pnpm"
    YARN = "yarn"
    BUN = "bun"
    NPM = "npm"


class CompressionFormat(str, Enum):
    """压缩格式枚举"""
    ZIP = "zip"
    TAR_GZ = "tar.gz"
    TAR = "tar"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["CompressionFormat"]:
        """解析压缩格式字符串，非法值返回 None"""
        if value is None:
            return None
        normalized = str(value).strip().lower()
        if normalized == "tar_gz":
            normalized = cls.TAR_GZ.value
        for member in cls:
            if member.value == normalized:
                return member
        return None

    @property
    def extension(self) -> str:
        return self.value


SUPPORTED_COMPRESSION_FORMATS = [fmt.value for fmt in CompressionFormat]


def _dedupe(values: List[str]) -> List[str]:
    cleaned: List[str] = []
    for value in values:
        value = value.strip()
        if value and value not in cleaned:
            cleaned.append(value)
    return cleaned


class BuildConfig(BaseModel):
    """构建配置模型

    同一个模型既描述覆盖配置文件的内容，也描述合并后的有效配置。
    compression_format 保留原始字符串，非法值由校验阶段报告。
    """

    build_command: str = Field("", alias="buildCommand", description="构建命令")
    output_dir: Optional[str] = Field(None, alias="outputDir", description="构建输出目录")
    environment_vars: List[str] = Field(
        default_factory=list, alias="environmentVars", description="构建所需环境变量（名称或前缀）"
    )
    success_indicators: List[str] = Field(
        default_factory=list, alias="successIndicators", description="构建成功标志文件"
    )
    pre_build_commands: List[str] = Field(
        default_factory=list, alias="preBuildCommands", description="构建前执行的命令"
    )
    post_build_commands: List[str] = Field(
        default_factory=list, alias="postBuildCommands", description="构建后执行的命令"
    )
    exclude: List[str] = Field(default_factory=list, description="排除模式列表")
    include: List[str] = Field(default_factory=list, description="包含模式列表")
    compression_format: Optional[str] = Field(None, alias="compressionFormat", description="压缩格式")
    compression_level: int = Field(9, alias="compressionLevel", description="压缩级别", ge=0, le=9)
    use_shell: bool = Field(False, alias="useShell", description="是否通过系统 shell 执行命令")
    build_timeout: Optional[float] = Field(None, alias="buildTimeout", description="构建超时（秒）", gt=0)

    model_config = {
        "extra": "ignore",
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }

    _declared: Optional[FrozenSet[str]] = PrivateAttr(default=None)

    @field_validator('environment_vars', 'success_indicators')
    @classmethod
    def validate_unique_list(cls, v: List[str]) -> List[str]:
        """去除空白和重复项"""
        return _dedupe(v)

    @field_validator('pre_build_commands', 'post_build_commands')
    @classmethod
    def validate_commands(cls, v: List[str]) -> List[str]:
        """去除空命令"""
        return [cmd.strip() for cmd in v if cmd and cmd.strip()]

    @field_validator('output_dir', 'compression_format', mode='before')
    @classmethod
    def empty_as_none(cls, v: Any) -> Any:
        """空字符串视为未设置"""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def declared_fields(self) -> FrozenSet[str]:
        """用户显式声明的字段集合"""
        if self._declared is not None:
            return self._declared
        return frozenset(self.model_fields_set)

    def mark_declared(self, fields: FrozenSet[str]) -> None:
        self._declared = frozenset(fields)

    def get_compression_format(self) -> Optional[CompressionFormat]:
        return CompressionFormat.parse(self.compression_format)

    def to_dict(self) -> Dict[str, Any]:
        """转换为覆盖配置文件使用的字典"""
        data = self.model_dump(by_alias=True)
        if data.get("outputDir") is None:
            data["outputDir"] = ""
        if data.get("compressionFormat") is None:
            data["compressionFormat"] = ""
        if data.get("buildTimeout") is None:
            data.pop("buildTimeout")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildConfig":
        """从字典创建配置实例"""
        return cls.model_validate(data)
