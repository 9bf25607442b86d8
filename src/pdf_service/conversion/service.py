import asyncio
import logging
import uuid
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

from .errors import EngineUnavailable, LoadTimeout, RenderError, ValidationError
from .interfaces import RendererGateway, RenderSession, StorageGateway
from .options import RenderOptions
from .store import JobRecord, JobStatus, JobStore, RetentionSweeper
from .stylesheet import PRINT_STYLESHEET

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALLOWED_EXTENSIONS = frozenset({".html", ".htm"})
DEFAULT_RETENTION_SEC = 10 * 60


def check_upload_name(filename: str | None) -> str:
    """Return the filename if it carries an accepted extension."""
    if not filename:
        raise ValidationError("No file uploaded")
    if Path(filename).suffix.lower() not in ALLOWED_EXTENSIONS:
        raise ValidationError("Only HTML files are allowed")
    return filename


async def read_limited(reader: Callable[[int], Awaitable[bytes]], *, max_bytes: int) -> bytes:
    """Drain ``reader`` in chunks, refusing anything larger than ``max_bytes``."""
    chunks: list[bytes] = []
    size = 0
    CHUNK = 1024 * 1024
    while True:
        chunk = await reader(CHUNK)
        if not chunk:
            break
        size += len(chunk)
        if size > max_bytes:
            raise ValidationError(f"File exceeds the {max_bytes // (1024 * 1024)} MB limit")
        chunks.append(bytes(chunk))
    if size == 0:
        raise ValidationError("Uploaded file is empty")
    return b"".join(chunks)


def artifact_name(original_filename: str, job_id: str) -> str:
    stem = Path(original_filename.replace("\\", "/")).stem or "document"
    return f"{stem}-{job_id[:8]}.pdf"


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ConversionService:
    """Owns the lifecycle of HTML to PDF conversion jobs.

    ``submit`` stores the input, records the job as ``starting`` and returns
    its id; a background task then walks the job through fixed progress
    checkpoints and leaves exactly one terminal record (``completed`` or
    ``error``) in the job store, which the retention sweeper later removes.
    """

    def __init__(
        self,
        store: JobStore,
        storage: StorageGateway,
        renderer: RendererGateway,
        *,
        load_timeout: float = 30.0,
        render_timeout: float = 60.0,
        launch_timeout: float = 30.0,
        retention: float = DEFAULT_RETENTION_SEC,
        max_concurrent_renders: int = 0,
        download_prefix: str = "/download",
    ) -> None:
        self._store = store
        self._storage = storage
        self._renderer = renderer
        self._load_timeout = load_timeout
        self._render_timeout = render_timeout
        self._launch_timeout = launch_timeout
        self._sweeper = RetentionSweeper(store, retention)
        self._slots = asyncio.Semaphore(max_concurrent_renders) if max_concurrent_renders > 0 else None
        self._download_prefix = download_prefix.rstrip("/")
        self._tasks: set[asyncio.Task] = set()

    @property
    def store(self) -> JobStore:
        return self._store

    @property
    def storage(self) -> StorageGateway:
        return self._storage

    @property
    def sweeper(self) -> RetentionSweeper:
        return self._sweeper

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def start(self) -> None:
        logger.info("Conversion service started")

    async def stop(self) -> None:
        self._sweeper.shutdown()
        tasks = list(self._tasks)
        for t in tasks:
            t.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Conversion service stopped")

    def get_status(self, job_id: str) -> JobRecord:
        return self._store.get(job_id)

    def submit(self, content: bytes, filename: str, options: RenderOptions | None = None) -> str:
        """Start a conversion and return its job id without waiting for it.

        Must be called from a running event loop.
        """
        options = options or RenderOptions()
        loop = asyncio.get_running_loop()
        job_id = str(uuid.uuid4())
        input_path = self._storage.save_upload(filename, content)
        self._store.set(job_id, JobRecord(JobStatus.STARTING, 0, "Initializing conversion..."))
        logger.info("Job %s submitted for %s", job_id, filename)

        task = loop.create_task(self._run_job(job_id, input_path, filename, options))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job_id

    def _checkpoint(self, job_id: str, progress: int, message: str) -> None:
        self._store.set(job_id, JobRecord(JobStatus.PROCESSING, progress, message))
        logger.debug("Job %s at %d%%: %s", job_id, progress, message)

    async def _run_job(self, job_id: str, input_path: str, filename: str, options: RenderOptions) -> None:
        file_name = artifact_name(filename, job_id)
        try:
            if self._slots is None:
                await self._convert(job_id, input_path, file_name, options)
            else:
                async with self._slots:
                    await self._convert(job_id, input_path, file_name, options)
        except Exception as e:
            logger.warning("Job %s failed: %s", job_id, _describe(e), exc_info=True)
            self._store.set(job_id, JobRecord(JobStatus.ERROR, 0, f"Conversion failed: {_describe(e)}"))
            try:
                await asyncio.to_thread(self._storage.discard_output, file_name)
            except OSError:
                logger.warning("Job %s: could not remove partial output %s", job_id, file_name, exc_info=True)
        else:
            self._store.set(
                job_id,
                JobRecord(
                    JobStatus.COMPLETED,
                    100,
                    "Conversion completed!",
                    download_url=f"{self._download_prefix}/{file_name}",
                    file_name=file_name,
                ),
            )
            logger.info("Job %s completed: %s", job_id, file_name)
        self._sweeper.schedule(job_id)

    async def _convert(self, job_id: str, input_path: str, file_name: str, options: RenderOptions) -> None:
        session: RenderSession | None = None
        try:
            self._checkpoint(job_id, 20, "Launching rendering engine...")
            session = await self._bounded(
                self._renderer.launch(), self._launch_timeout, EngineUnavailable, "engine launch"
            )

            self._checkpoint(job_id, 40, "Loading HTML content...")
            html = await asyncio.to_thread(self._storage.read_upload, input_path)
            await self._bounded(
                session.load_content(html, timeout=self._load_timeout),
                self._load_timeout,
                LoadTimeout,
                "content load",
            )

            self._checkpoint(job_id, 60, "Rendering document...")
            await self._bounded(session.wait_for_assets(), self._load_timeout, LoadTimeout, "asset loading")
            await session.apply_style_overrides(PRINT_STYLESHEET)

            self._checkpoint(job_id, 80, "Generating PDF file...")
            await self._bounded(
                session.export_fixed_layout(self._storage.output_path(file_name), options.export_settings()),
                self._render_timeout,
                RenderError,
                "PDF export",
            )
        finally:
            try:
                if session is not None:
                    await session.close()
            finally:
                await asyncio.to_thread(self._storage.remove_upload, input_path)

    @staticmethod
    async def _bounded(
        aw: Awaitable[T], timeout: float, error: type[Exception], what: str
    ) -> T:
        try:
            return await asyncio.wait_for(aw, timeout)
        except asyncio.TimeoutError as e:
            raise error(f"{what} timed out after {timeout:g}s") from e
