"""
Kapsul - JavaScript/TypeScript 项目构建与打包工具

Builds a local Next.js / Express / Node.js project and packages it into a
deployable archive.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .config.schema import BuildConfig, CompressionFormat, ProjectType
from .build.pipeline import PackagingPipeline, PipelineDecisions, PipelineResult

__all__ = [
    "BuildConfig",
    "CompressionFormat",
    "ProjectType",
    "PackagingPipeline",
    "PipelineDecisions",
    "PipelineResult",
    "__version__",
]
