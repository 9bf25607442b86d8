from typing import Protocol

from .options import ExportSettings


class RenderSession(Protocol):
    """One engine instance owned by a single job.

    Every call may be slow and may fail; callers bound them with timeouts and
    always call ``close`` when done.
    """

    async def load_content(self, html: str, *, timeout: float) -> None:
        """Load markup and wait for DOM-ready and network-idle.

        Raises LoadTimeout or LoadError.
        """

    async def wait_for_assets(self) -> None:
        ...

    async def apply_style_overrides(self, stylesheet: str) -> None:
        ...

    async def export_fixed_layout(self, output_path: str, settings: ExportSettings) -> None:
        """Write the PDF to ``output_path``. Raises RenderError."""

    async def close(self) -> None:
        """Release the engine. Must not raise."""


class RendererGateway(Protocol):
    async def launch(self) -> RenderSession:
        """Start a fresh engine instance. Raises EngineUnavailable."""


class StorageGateway(Protocol):
    def save_upload(self, filename: str, content: bytes) -> str:
        ...

    def read_upload(self, path: str) -> str:
        ...

    def remove_upload(self, path: str) -> None:
        ...

    def output_path(self, file_name: str) -> str:
        ...

    def discard_output(self, file_name: str) -> None:
        ...

    def find_output(self, file_name: str) -> str | None:
        ...
