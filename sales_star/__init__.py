"""
Sales Star-Schema ETL

Batch pipeline turning raw sales records into customer, product, region and
date dimensions plus a sales fact table.
"""
from .pipeline import PipelineCoordinator, RunResult, RunStatus

__version__ = "1.0.0"

__all__ = [
    "PipelineCoordinator",
    "RunResult",
    "RunStatus",
]
