"""
Operation context for cooperative cancellation of blocking waits.

Long-running provider operations (waiting for a subscription to finish
provisioning can take minutes) check the context between remote calls and
sleep on it, so a cancellation request from another thread or a signal
handler interrupts them promptly.
"""

from __future__ import annotations

import threading


class CancellationError(Exception):
    """Raised when an operation is cancelled through an OperationContext."""

    def __init__(self, message: str = "Operation was cancelled"):
        self.message = message
        super().__init__(self.message)


class OperationContext:
    """
    Cancellation signal shared by the steps of one provider operation.

    Example:
        ctx = OperationContext()

        def on_sigint(signum, frame):
            ctx.cancel()

        signal.signal(signal.SIGINT, on_sigint)

        diags = account_subscription.create(ctx, d, meta)
    """

    def __init__(self) -> None:
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """
        Cancel the context, signalling all waits to stop.

        Safe to call from any thread.
        """
        self._cancelled.set()

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def raise_if_cancelled(self) -> None:
        """
        Raise CancellationError if the context has been cancelled.

        Raises:
            CancellationError: If the context has been cancelled.
        """
        if self._cancelled.is_set():
            raise CancellationError()

    def sleep(self, seconds: float) -> None:
        """
        Sleep for ``seconds`` unless cancelled first.

        Raises:
            CancellationError: If the context is cancelled before or during the sleep.
        """
        self.raise_if_cancelled()
        if seconds > 0 and self._cancelled.wait(seconds):
            raise CancellationError()


__all__ = [
    "CancellationError",
    "OperationContext",
]
