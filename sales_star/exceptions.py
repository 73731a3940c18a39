"""
Pipeline Exceptions

Only collaborator failures are exceptions. Data-quality conditions (key
conflicts, unresolved references, null measures) are reported as counts.
"""


class PipelineError(Exception):
    """Base class for pipeline failures"""


class SourceUnavailable(PipelineError):
    """The raw sales source could not be read"""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Source '{source}' unavailable: {reason}")


class StorageError(PipelineError):
    """A dataset could not be written to the store"""


class DatasetNotFoundError(PipelineError):
    """A dataset was read before it was ever written"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Dataset '{name}' has not been published")
