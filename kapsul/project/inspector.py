"""
项目检查器

读取 package.json 与标志文件/目录，推断项目类型和工具链信息。
所有探测均为只读操作，任何读取错误都降级为默认值。
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

from ..config.schema import ProjectType
from ..utils.logging import LogStage, debug


MANIFEST_FILE = "package.json"

NEXT_CONFIG_FILES = ["next.config.js", "next.config.mjs", "next.config.cjs", "next.config.ts"]
NEXT_ENTRY_STEMS = ["pages/_app", "pages/_document", "app/layout", "app/page"]
NEXT_BUILD_DIR = ".next"

SCRIPT_EXTENSIONS = [".js", ".mjs", ".cjs", ".ts"]
PAGE_EXTENSIONS = [".js", ".jsx", ".ts", ".tsx"]
SERVER_ENTRY_STEMS = ["server", "app", "index"]
EXPRESS_DIRECTORIES = ["routes", "middleware"]
EXPRESS_IMPORT_MARKERS = [
    "require('express')",
    'require("express")',
    "from 'express'",
    'from "express"',
]

NODE_ENTRY_FILES = ["index.js", "main.js", "server.js", "app.js", "src/index.js", "src/main.js"]

TYPESCRIPT_SOURCE_DIRS = ["src", "lib", "app", "server", "pages"]
TYPESCRIPT_EXTENSIONS = (".ts", ".tsx")
SKIP_DIRECTORIES = {"node_modules", ".git", NEXT_BUILD_DIR}


class DetectionError(Exception):
    """项目探测错误（清单文件损坏等），只在检查器内部使用"""
    pass


class ProjectInspector:
    """项目检查器

    Args:
        project_root: 项目根目录
    """

    def __init__(self, project_root: Union[str, Path] = "."):
        self.project_root = Path(project_root)

    @property
    def manifest_path(self) -> Path:
        return self.project_root / MANIFEST_FILE

    def has_file(self, relative_path: str) -> bool:
        """检查项目中是否存在指定文件或目录"""
        return (self.project_root / relative_path).exists()

    def has_manifest(self) -> bool:
        return self.manifest_path.is_file()

    def load_manifest(self) -> Optional[Dict[str, Any]]:
        """读取 package.json

        Returns:
            清单字典，文件不存在时返回 None

        Raises:
            DetectionError: 文件无法读取或不是合法的 JSON 对象
        """
        if not self.has_manifest():
            return None

        try:
            with open(self.manifest_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise DetectionError(f"无法解析 {MANIFEST_FILE}: {e}") from e

        if not isinstance(data, dict):
            raise DetectionError(f"{MANIFEST_FILE} 根级别必须是对象")
        return data

    def read_manifest(self) -> Optional[Dict[str, Any]]:
        """读取 package.json，损坏时返回 None"""
        try:
            return self.load_manifest()
        except DetectionError as e:
            debug(str(e), stage=LogStage.INSPECT)
            return None

    def get_dependencies(self, manifest: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
        """合并 dependencies 与 devDependencies"""
        if manifest is None:
            manifest = self.read_manifest()
        if not manifest:
            return {}

        merged: Dict[str, str] = {}
        for key in ("dependencies", "devDependencies"):
            section = manifest.get(key)
            if isinstance(section, dict):
                merged.update(section)
        return merged

    def get_scripts(self, manifest: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
        if manifest is None:
            manifest = self.read_manifest()
        scripts = (manifest or {}).get("scripts")
        return scripts if isinstance(scripts, dict) else {}

    def detect_project_type(self) -> ProjectType:
        """推断项目类型

        优先级：next > express > node > unknown。
        """
        try:
            manifest = self.load_manifest()
        except DetectionError as e:
            debug(f"项目类型探测失败: {e}", stage=LogStage.INSPECT)
            return ProjectType.UNKNOWN

        dependencies = self.get_dependencies(manifest) if manifest else {}

        if self._looks_like_next(dependencies):
            return ProjectType.NEXT

        if self._looks_like_express(dependencies):
            return ProjectType.EXPRESS

        if manifest is not None and self._looks_like_node(manifest, dependencies):
            return ProjectType.NODE

        return ProjectType.UNKNOWN

    def _looks_like_next(self, dependencies: Dict[str, str]) -> bool:
        if "next" in dependencies:
            return True

        if any(self.has_file(name) for name in NEXT_CONFIG_FILES):
            return True

        for prefix in ("", "src/"):
            for stem in NEXT_ENTRY_STEMS:
                if any(self.has_file(f"{prefix}{stem}{ext}") for ext in PAGE_EXTENSIONS):
                    return True

        return (self.project_root / NEXT_BUILD_DIR).is_dir()

    def _looks_like_express(self, dependencies: Dict[str, str]) -> bool:
        if "express" in dependencies:
            return True

        for entry in self._server_entry_files():
            try:
                content = entry.read_text(encoding='utf-8', errors='ignore')
            except OSError:
                continue
            if any(marker in content for marker in EXPRESS_IMPORT_MARKERS):
                return True

        return any((self.project_root / name).is_dir() for name in EXPRESS_DIRECTORIES)

    def _server_entry_files(self) -> Iterator[Path]:
        for prefix in ("", "src/"):
            for stem in SERVER_ENTRY_STEMS:
                for ext in SCRIPT_EXTENSIONS:
                    candidate = self.project_root / f"{prefix}{stem}{ext}"
                    if candidate.is_file():
                        yield candidate

    def _looks_like_node(self, manifest: Dict[str, Any], dependencies: Dict[str, str]) -> bool:
        main = manifest.get("main")
        if isinstance(main, str) and main and self.has_file(main):
            return True

        if any(self.has_file(name) for name in NODE_ENTRY_FILES):
            return True

        if self.get_scripts(manifest).get("start"):
            return True

        if manifest.get("type") or manifest.get("engines"):
            return True

        return bool(dependencies)

    def is_typescript_project(self) -> bool:
        """是否为 TypeScript 项目"""
        if self.has_file("tsconfig.json"):
            return True

        if "typescript" in self.get_dependencies():
            return True

        for dir_name in TYPESCRIPT_SOURCE_DIRS:
            source_dir = self.project_root / dir_name
            if source_dir.is_dir() and self._contains_typescript(source_dir):
                return True

        return False

    def _contains_typescript(self, directory: Path) -> bool:
        for dirpath, dirnames, filenames in os.walk(directory):
            dirnames[:] = [d for d in dirnames if d not in SKIP_DIRECTORIES]
            if any(name.endswith(TYPESCRIPT_EXTENSIONS) for name in filenames):
                return True
        return False

    def get_typescript_out_dir(self) -> Optional[str]:
        """读取 tsconfig.json 中的 compilerOptions.outDir"""
        tsconfig = self.project_root / "tsconfig.json"
        if not tsconfig.is_file():
            return None

        try:
            with open(tsconfig, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError):
            # tsconfig 允许注释，标准 JSON 解析失败时放弃
            return None

        options = data.get("compilerOptions") if isinstance(data, dict) else None
        out_dir = options.get("outDir") if isinstance(options, dict) else None
        return out_dir if isinstance(out_dir, str) and out_dir else None

    def get_project_name(self) -> Optional[str]:
        name = (self.read_manifest() or {}).get("name")
        return name if isinstance(name, str) else None

    def get_project_version(self) -> Optional[str]:
        version = (self.read_manifest() or {}).get("version")
        return version if isinstance(version, str) else None

    def get_module_format(self) -> str:
        """模块格式：module 或 commonjs"""
        module_type = (self.read_manifest() or {}).get("type")
        return "module" if module_type == "module" else "commonjs"

    def get_entry_point(self) -> Optional[str]:
        """项目入口文件（相对路径）"""
        main = (self.read_manifest() or {}).get("main")
        if isinstance(main, str) and main and self.has_file(main):
            return main

        for name in NODE_ENTRY_FILES:
            if self.has_file(name):
                return name
        return None

    def list_missing_files(self, names: List[str]) -> List[str]:
        return [name for name in names if not self.has_file(name)]
