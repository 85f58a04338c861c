"""Job session state, supervised runner and progress streaming."""

from sessions.registry import CANCELLED_MESSAGE, SessionRegistry
from sessions.runner import JobRunner
from sessions.stream import ProgressStream, format_sse

__all__ = [
    "CANCELLED_MESSAGE",
    "JobRunner",
    "ProgressStream",
    "SessionRegistry",
    "format_sse",
]
