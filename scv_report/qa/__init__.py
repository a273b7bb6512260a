"""QA validation package for the SCV report builder.

Reads a generated workbook back and checks the sheet set, section
headers, row counts and respondent order.
"""

from .validator import (
    Issue,
    QAResult,
    WorkbookValidator,
    validate_workbook,
)

__all__ = [
    "Issue",
    "QAResult",
    "WorkbookValidator",
    "validate_workbook",
]
