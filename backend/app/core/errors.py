"""
Engine error taxonomy.

`retryable` tells the caller whether re-running campaign selection can
succeed: lost ledger races are retryable, bad input and broken campaign
configuration are final.
"""


class EngineError(Exception):
    status_code = 400
    retryable = False

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    @property
    def code(self) -> str:
        return type(self).__name__


class ValidationError(EngineError):
    """Malformed order snapshot or request"""
    status_code = 400


class InconsistentConfiguration(EngineError):
    """Campaign or promotion record breaks a model invariant"""
    status_code = 500


class LedgerConflict(EngineError):
    """A conditional ledger update matched no row"""
    status_code = 409
    retryable = True


class UsageLimitExceeded(LedgerConflict):
    pass


class BudgetExceeded(LedgerConflict):
    pass


class CampaignUnavailable(LedgerConflict):
    """Campaign was paused, ended or removed between selection and commit"""
    pass
