import asyncio
import logging
import threading
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class JobStatus:
    STARTING = "starting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    UNKNOWN = "unknown"

    TERMINAL = frozenset({COMPLETED, ERROR})


@dataclass(frozen=True)
class JobRecord:
    status: str
    progress: int = 0
    message: str | None = None
    download_url: str | None = None
    file_name: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in JobStatus.TERMINAL

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"status": self.status, "progress": self.progress}
        if self.message is not None:
            data["message"] = self.message
        if self.download_url is not None:
            data["downloadUrl"] = self.download_url
        if self.file_name is not None:
            data["fileName"] = self.file_name
        return data


UNKNOWN_RECORD = JobRecord(status=JobStatus.UNKNOWN, progress=0)


class JobStore:
    """In-memory job id -> status record map shared by workers and pollers.

    Records are immutable, so replacing one under the lock is the only write.
    """

    def __init__(self) -> None:
        self._records: dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def set(self, job_id: str, record: JobRecord) -> None:
        with self._lock:
            self._records[job_id] = record

    def get(self, job_id: str) -> JobRecord:
        with self._lock:
            return self._records.get(job_id, UNKNOWN_RECORD)

    def delete(self, job_id: str) -> None:
        with self._lock:
            self._records.pop(job_id, None)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class RetentionSweeper:
    """Drops a job's record from the store a fixed delay after it is scheduled."""

    def __init__(self, store: JobStore, delay: float) -> None:
        self._store = store
        self._delay = delay
        self._timers: dict[str, asyncio.TimerHandle] = {}

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> int:
        return len(self._timers)

    def schedule(self, job_id: str) -> None:
        """Arm a one-shot timer; must be called from the event loop thread."""
        loop = asyncio.get_running_loop()
        previous = self._timers.pop(job_id, None)
        if previous is not None:
            previous.cancel()
        self._timers[job_id] = loop.call_later(self._delay, self._expire, job_id)

    def _expire(self, job_id: str) -> None:
        self._timers.pop(job_id, None)
        self._store.delete(job_id)
        logger.debug("Swept job %s", job_id)

    def shutdown(self) -> None:
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
