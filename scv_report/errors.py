"""Error taxonomy for report generation.

Every failure that leaves the orchestrator is a ``ReportError`` carrying
the project identifier and the step at which it occurred.  The original
exception, when there is one, is chained as ``__cause__``.
"""


class ReportError(Exception):
    """Base class for report generation failures."""

    def __init__(self, message, project_id=None, step=None):
        super().__init__(message)
        self.message = message
        self.project_id = project_id
        self.step = step

    @property
    def category(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        parts = [self.message]
        if self.project_id:
            parts.append(f"project={self.project_id}")
        if self.step:
            parts.append(f"step={self.step}")
        return " | ".join(parts)


class ConfigurationError(ReportError):
    """A required run parameter is missing or invalid."""


class InputNotFoundError(ReportError):
    """A required input document does not exist in blob storage."""


class InputFormatError(ReportError):
    """An input document exists but cannot be parsed into records."""


class ExternalAssetError(ReportError):
    """A per-row external asset (product thumbnail) could not be fetched."""


class CapacityError(ReportError):
    """The document exceeds spreadsheet size limits or available memory."""


class PersistenceError(ReportError):
    """The finished document could not be stored."""
