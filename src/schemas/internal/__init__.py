"""Internal schema definitions."""

from .analysis import (  # noqa: F401
    AnalysisResult,
    BatchProgress,
    QrocResult,
    QrocWorkItem,
    WorkItem,
)
from .jobs import JobKind, JobPhase, JobSession, JobSummary  # noqa: F401
from .rows import (  # noqa: F401
    CANONICAL_FIELDS,
    FIELD_LABELS,
    OPTION_LETTERS,
    SHEET_ORDER,
    RowFailure,
    RowRecord,
    SheetKind,
)
