"""Shared fixtures: an on-disk storage area and a scriptable fake renderer."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from pdf_service.conversion import (
    ConversionService,
    EngineUnavailable,
    ExportSettings,
    JobRecord,
    JobStore,
    LoadError,
    RenderError,
)
from pdf_service.conversion.adapters import LocalStorage


class FakeSession:
    def __init__(self, renderer: "FakeRenderer") -> None:
        self._renderer = renderer
        self.html: str | None = None
        self.stylesheets: list[str] = []
        self.settings: ExportSettings | None = None
        self.closed = False

    async def load_content(self, html: str, *, timeout: float) -> None:
        if self._renderer.fail_at == "load":
            raise LoadError("could not load content: boom")
        self.html = html

    async def wait_for_assets(self) -> None:
        if self._renderer.asset_delay:
            await asyncio.sleep(self._renderer.asset_delay)

    async def apply_style_overrides(self, stylesheet: str) -> None:
        self.stylesheets.append(stylesheet)

    async def export_fixed_layout(self, output_path: str, settings: ExportSettings) -> None:
        self._renderer.active += 1
        self._renderer.peak_active = max(self._renderer.peak_active, self._renderer.active)
        try:
            if self._renderer.export_delay:
                await asyncio.sleep(self._renderer.export_delay)
            if self._renderer.fail_at == "export":
                # Leave a partial artifact behind, as a crashing engine might
                Path(output_path).write_bytes(b"%PDF-partial")
                raise RenderError("PDF export failed: engine crashed")
            self.settings = settings
            Path(output_path).write_bytes(b"%PDF-1.4\n" + (self.html or "").encode("utf-8"))
        finally:
            self._renderer.active -= 1

    async def close(self) -> None:
        self.closed = True
        if self._renderer.close_error:
            raise RuntimeError("browser already gone")


class FakeRenderer:
    """Renderer double; ``fail_at`` is one of None, "launch", "load", "export"."""

    def __init__(self) -> None:
        self.fail_at: str | None = None
        self.launch_delay = 0.0
        self.asset_delay = 0.0
        self.export_delay = 0.0
        self.close_error = False
        self.sessions: list[FakeSession] = []
        self.active = 0
        self.peak_active = 0

    async def launch(self) -> FakeSession:
        if self.launch_delay:
            await asyncio.sleep(self.launch_delay)
        if self.fail_at == "launch":
            raise EngineUnavailable("could not launch browser: no chromium")
        session = FakeSession(self)
        self.sessions.append(session)
        return session


class RecordingStore(JobStore):
    """JobStore that keeps every write so tests can inspect checkpoint order."""

    def __init__(self) -> None:
        super().__init__()
        self.writes: list[tuple[str, JobRecord]] = []

    def set(self, job_id: str, record: JobRecord) -> None:
        self.writes.append((job_id, record))
        super().set(job_id, record)

    def history(self, job_id: str) -> list[JobRecord]:
        return [r for jid, r in self.writes if jid == job_id]


async def wait_terminal(service: ConversionService, job_id: str, timeout: float = 5.0) -> JobRecord:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        record = service.get_status(job_id)
        if record.is_terminal:
            return record
        await asyncio.sleep(0.005)
    raise AssertionError(f"job {job_id} did not finish: {service.get_status(job_id)}")


@pytest.fixture
def storage(tmp_path: Path) -> LocalStorage:
    return LocalStorage(str(tmp_path / "data"))


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def make_service(store, storage, renderer):
    def _make(**kwargs) -> ConversionService:
        kwargs.setdefault("load_timeout", 2.0)
        kwargs.setdefault("render_timeout", 2.0)
        kwargs.setdefault("launch_timeout", 2.0)
        return ConversionService(store=store, storage=storage, renderer=renderer, **kwargs)

    return _make
