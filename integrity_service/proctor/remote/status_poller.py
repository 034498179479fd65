"""
Status Poller - Periodically feeds the remote score into reconciliation

Runs in the application layer next to a MonitoringSession; the detection
tick never waits on it.
"""

import asyncio
import logging
from typing import Optional

from ..errors import RemoteDeliveryError

logger = logging.getLogger(__name__)


class StatusPoller:
    """
    Polls `GET /session/{id}/status` and reconciles `integrityScore`.

    Args:
        session: MonitoringSession to reconcile
        client: ReportClient used for polling
        interval: Seconds between polls
    """

    DEFAULT_INTERVAL = 5.0

    def __init__(self, session, client, interval: float = DEFAULT_INTERVAL):
        self.session = session
        self.client = client
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self.poll_count = 0
        self.failure_count = 0

    async def poll_once(self) -> Optional[int]:
        """
        Fetch status once and reconcile.

        Returns:
            Local score after reconciliation, or None if the poll failed
        """
        self.poll_count += 1
        try:
            status = await self.client.fetch_status(self.session.id)
        except RemoteDeliveryError as e:
            self.failure_count += 1
            logger.warning(f"Status poll failed for session {self.session.id}: {e}")
            return None

        return self.session.sync_remote_status(status)

    async def run(self):
        """
        Poll until cancelled or the session closes.

        Errors other than RemoteDeliveryError (bad URL, malformed body) are
        logged and counted; polling continues.
        """
        while self.session.is_open:
            try:
                await self.poll_once()
            except Exception as e:
                self.failure_count += 1
                logger.error(f"Unexpected status poll error for session {self.session.id}: {e!r}")
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        """Start polling on the running event loop"""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    def stop(self):
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
