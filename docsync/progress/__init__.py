# ==============================================
# PROGRESS
# ==============================================
#
# Live progress of an import run, published to whoever listens.
#
# Modules:
# --------
# - state.py    → ImportProgressState, CollectionProgress, statuses
# - reporter.py → ProgressReporter, ProgressChannel, LoggingProgressChannel
#
# ==============================================

from .state import CollectionProgress, CollectionStatus, ImportProgressState, RunStatus
from .reporter import DEFAULT_EVENT, LoggingProgressChannel, ProgressChannel, ProgressReporter

__all__ = [
    "CollectionProgress",
    "CollectionStatus",
    "ImportProgressState",
    "RunStatus",
    "DEFAULT_EVENT",
    "LoggingProgressChannel",
    "ProgressChannel",
    "ProgressReporter",
]
