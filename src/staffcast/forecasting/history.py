"""Time-bounded access to historical volumes."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import date
from typing import Optional

from staffcast.domain.errors import DataUnavailableError
from staffcast.domain.models import HistoricalSample
from staffcast.storage.interfaces import ForecastStore

logger = logging.getLogger(__name__)


class HistoricalDataSource:
    """Reads observed volumes from the store with a timeout.

    A slow or failing read never blocks a forecast: ``fetch`` raises
    DataUnavailableError and ``samples_or_empty`` turns that into an empty
    sample list so the predictor falls back.

    Args:
        store: Storage collaborator.
        lookback_days: Days of history to read.
        timeout_seconds: Read timeout; None waits indefinitely.
    """

    def __init__(
        self,
        store: ForecastStore,
        lookback_days: int = 28,
        timeout_seconds: Optional[float] = 5.0,
    ):
        self.store = store
        self.lookback_days = lookback_days
        self.timeout_seconds = timeout_seconds
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    def _get_executor(self) -> ThreadPoolExecutor:
        # Created on first read so an unused source owns no threads
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="history")
            return self._executor

    def fetch(
        self,
        channel_id: str,
        hour: int,
        skill: Optional[str] = None,
        as_of: Optional[date] = None,
    ) -> list[HistoricalSample]:
        """Read samples for a channel hour.

        Raises:
            DataUnavailableError: On store failure or timeout.
        """
        future = self._get_executor().submit(
            self.store.get_historical_volumes,
            channel_id,
            hour,
            skill,
            self.lookback_days,
            as_of,
        )
        try:
            return list(future.result(timeout=self.timeout_seconds))
        except FutureTimeoutError as exc:
            future.cancel()
            raise DataUnavailableError(
                f"History read for channel {channel_id} hour {hour} timed out "
                f"after {self.timeout_seconds}s"
            ) from exc
        except Exception as exc:
            raise DataUnavailableError(
                f"History read for channel {channel_id} hour {hour} failed: {exc}"
            ) from exc

    def samples_or_empty(
        self,
        channel_id: str,
        hour: int,
        skill: Optional[str] = None,
        as_of: Optional[date] = None,
    ) -> list[HistoricalSample]:
        """Read samples, degrading to an empty list when data is unavailable."""
        try:
            return self.fetch(channel_id, hour, skill, as_of)
        except DataUnavailableError as exc:
            logger.warning("%s; using fallback prediction", exc)
            return []

    def close(self) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=False)
                self._executor = None
