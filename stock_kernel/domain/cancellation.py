"""Cooperative cancellation for long reconciliation sweeps."""

import threading

from stock_kernel.exceptions import ReconciliationCancelledError


class CancellationToken:
    """
    Flag checked between per-record iterations of a sweep.

    Contract:
        ``cancel()`` may be called from any thread.  Read-only sweeps call
        ``raise_if_cancelled()`` before each record.  Writing sweeps check
        ``cancelled`` and stop with a partial result; work already committed
        for earlier records stays committed.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, business_id: int, processed: int) -> None:
        if self._event.is_set():
            raise ReconciliationCancelledError(business_id, processed)
