"""Publish/subscribe fan-out of export job state changes.

The bridge never polls and never mutates job state.  The tracker publishes
snapshots; any number of independent consumers receive every one of them.
"""

from collections.abc import Callable

from loguru import logger

from erp_exports.lib.export_jobs.types import ExportJob

JobCallback = Callable[[ExportJob], None]
Unsubscribe = Callable[[], None]


class NotificationBridge:
    """Typed observer registry for ExportJob snapshots."""

    def __init__(self) -> None:
        self._subscribers: dict[int, JobCallback] = {}
        self._next_id = 0

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: JobCallback) -> Unsubscribe:
        """Register a callback for every published job.

        The same callable may be registered more than once; each
        registration is independent.

        Args:
            callback: Called with a job snapshot on every publish.

        Returns:
            A function that removes this registration.  Calling it again
            is a no-op.
        """
        subscription_id = self._next_id
        self._next_id += 1
        self._subscribers[subscription_id] = callback

        def unsubscribe() -> None:
            self._subscribers.pop(subscription_id, None)

        return unsubscribe

    def publish(self, job: ExportJob) -> None:
        """Call every current subscriber, in subscription order.

        Each subscriber gets its own snapshot.  A subscriber raising is
        logged and does not prevent later subscribers from being called.
        Changes to the subscriber set made during a publish apply to the
        next publish.

        Args:
            job: The job state to deliver.
        """
        for subscription_id, callback in list(self._subscribers.items()):
            try:
                callback(job.snapshot())
            except Exception:
                logger.exception(f"Export subscriber {subscription_id} failed for job {job.task_id}")
