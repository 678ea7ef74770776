"""
外部协作者接口

打包流水线只通过这些协议与凭据、上传传输和覆盖配置位置交互。
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, runtime_checkable


class TransportError(Exception):
    """上传传输错误"""
    pass


@dataclass
class UploadResult:
    """上传结果"""
    success: bool
    url: Optional[str] = None
    message: str = ""


@runtime_checkable
class BuildOverrideSource(Protocol):
    """提供覆盖配置文件位置"""

    def get_build_override_path(self) -> Path:
        ...


@runtime_checkable
class AuthTokenProvider(Protocol):
    """提供上传凭据，未登录时返回 None"""

    def get_auth_token(self) -> Optional[str]:
        ...


@runtime_checkable
class ArtifactUploader(Protocol):
    """上传归档文件

    实现可以抛出 TransportError。
    """

    def upload_artifact(self, path: Path) -> UploadResult:
        ...
