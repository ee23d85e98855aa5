"""
Exceptions raised by the extraction and enhancement orchestrators.
"""


class ReferenceExtractionError(Exception):
    """Raised when a document cannot be turned into references."""

    pass


class InvalidDocumentError(ReferenceExtractionError):
    """Raised synchronously for uploads rejected before a job is created."""

    pass


class EmptyExtractionError(ReferenceExtractionError):
    """Raised when extraction produced zero valid references."""

    pass


class JobNotFoundError(KeyError):
    """Raised when a job id is unknown to a registry or job store."""

    def __init__(self, job_id: str):
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"Job {self.job_id} not found"
