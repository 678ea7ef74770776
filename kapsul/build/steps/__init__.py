"""打包流水线步骤"""

from .build_step import BuildStep
from .decisions import PipelineDecisions
from .inspection_step import InspectionStep
from .config_resolution_step import ConfigResolutionStep
from .build_execution_step import BuildExecutionStep
from .output_validation_step import OutputValidationStep
from .archive_step import ArchiveStep

__all__ = [
    "BuildStep",
    "PipelineDecisions",
    "InspectionStep",
    "ConfigResolutionStep",
    "BuildExecutionStep",
    "OutputValidationStep",
    "ArchiveStep",
]
