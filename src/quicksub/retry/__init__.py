from .cancellation import CancellationError, OperationContext
from .state_change import (
    StateChangeConf,
    StateChangeError,
    StatusSource,
    UnexpectedStateError,
    WaitNotFoundError,
    WaitTimeoutError,
)

__all__ = [
    "CancellationError",
    "OperationContext",
    "StateChangeConf",
    "StateChangeError",
    "StatusSource",
    "UnexpectedStateError",
    "WaitNotFoundError",
    "WaitTimeoutError",
]
