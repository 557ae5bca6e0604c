"""Error taxonomy for scans.

SourceUnavailable and ResolutionError are per-item and never abort a run.
RunFailure is fatal to the request that triggered the run.
"""

from __future__ import annotations


class ScoutError(Exception):
    """Base class for playscout errors."""


class SourceUnavailable(ScoutError):
    def __init__(self, strategy: str, reason: str):
        self.strategy = strategy
        self.reason = reason
        super().__init__(f"{strategy}: {reason}")


class ResolutionError(ScoutError):
    def __init__(self, app_id: str, reason: str):
        self.app_id = app_id
        self.reason = reason
        super().__init__(f"{app_id}: {reason}")


class RunFailure(ScoutError):
    pass
