import logging
import uuid
from pathlib import Path

from .errors import EngineUnavailable, LoadError, LoadTimeout, RenderError
from .interfaces import RendererGateway, RenderSession, StorageGateway
from .options import ExportSettings

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = ("--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage")


def _first_line(text: str) -> str:
    # Playwright appends a multi-line "Call log:" with engine internals
    return text.strip().splitlines()[0] if text.strip() else text


def _safe_basename(filename: str) -> str:
    # Browsers on Windows may send the full client path
    name = Path(filename.replace("\\", "/")).name
    return name or "upload.html"


class LocalStorage(StorageGateway):
    def __init__(self, data_dir: str) -> None:
        self._base = Path(data_dir).resolve()
        self._uploads = self._base / "uploads"
        self._output = self._base / "output"
        self._uploads.mkdir(parents=True, exist_ok=True)
        self._output.mkdir(parents=True, exist_ok=True)

    @property
    def uploads_dir(self) -> Path:
        return self._uploads

    @property
    def output_dir(self) -> Path:
        return self._output

    def save_upload(self, filename: str, content: bytes) -> str:
        p = self._uploads / f"{uuid.uuid4()}-{_safe_basename(filename)}"
        p.write_bytes(content)
        return str(p)

    def read_upload(self, path: str) -> str:
        return Path(path).read_text(encoding="utf-8", errors="replace")

    def remove_upload(self, path: str) -> None:
        Path(path).unlink(missing_ok=True)

    def output_path(self, file_name: str) -> str:
        return str(self._output / file_name)

    def discard_output(self, file_name: str) -> None:
        (self._output / file_name).unlink(missing_ok=True)

    def find_output(self, file_name: str) -> str | None:
        """Return the artifact path, or None if missing or outside the output area."""
        if not file_name or "/" in file_name or "\\" in file_name or file_name in {".", ".."}:
            return None
        p = self._output / file_name
        if not p.is_file():
            return None
        return str(p)


async def _stop_driver(playwright) -> None:
    try:
        await playwright.stop()
    except Exception:
        logger.warning("Failed to stop Playwright driver", exc_info=True)


class PlaywrightSession(RenderSession):
    """A headless Chromium browser with a single page, owned by one job."""

    def __init__(self, playwright, browser) -> None:
        self._playwright = playwright
        self._browser = browser
        self._page = None

    async def load_content(self, html: str, *, timeout: float) -> None:
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError

        timeout_ms = timeout * 1000
        try:
            self._page = await self._browser.new_page()
            await self._page.set_content(html, wait_until="domcontentloaded", timeout=timeout_ms)
            await self._page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise LoadTimeout(f"content did not load within {timeout:g}s") from e
        except PlaywrightError as e:
            raise LoadError(f"could not load content: {_first_line(e.message)}") from e

    def _require_page(self):
        if self._page is None:
            raise RenderError("no content loaded")
        return self._page

    async def wait_for_assets(self) -> None:
        page = self._require_page()
        await page.evaluate("document.fonts.ready.then(() => true)")

    async def apply_style_overrides(self, stylesheet: str) -> None:
        page = self._require_page()
        await page.add_style_tag(content=stylesheet)

    async def export_fixed_layout(self, output_path: str, settings: ExportSettings) -> None:
        from playwright.async_api import Error as PlaywrightError

        page = self._require_page()
        try:
            await page.pdf(
                path=output_path,
                format=settings.page_size,
                print_background=settings.print_background,
                margin=settings.margins.as_dict(),
                prefer_css_page_size=False,
                display_header_footer=False,
                scale=settings.scale,
                landscape=settings.landscape,
            )
        except PlaywrightError as e:
            raise RenderError(f"PDF export failed: {_first_line(e.message)}") from e

    async def close(self) -> None:
        try:
            await self._browser.close()
        except Exception:
            logger.warning("Failed to close browser", exc_info=True)
        await _stop_driver(self._playwright)


class PlaywrightRenderer(RendererGateway):
    def __init__(self, *, channel: str | None = None, headless: bool = True) -> None:
        self._channel = channel
        self._headless = headless

    async def launch(self) -> PlaywrightSession:
        from playwright.async_api import async_playwright

        try:
            playwright = await async_playwright().start()
        except Exception as e:
            raise EngineUnavailable(f"could not start Playwright: {_first_line(str(e))}") from e
        kwargs: dict[str, object] = {"headless": self._headless, "args": list(CHROMIUM_ARGS)}
        if self._channel:
            kwargs["channel"] = self._channel
        try:
            browser = await playwright.chromium.launch(**kwargs)
        except Exception as e:
            await _stop_driver(playwright)
            raise EngineUnavailable(f"could not launch browser: {_first_line(str(e))}") from e
        except BaseException:
            # Cancelled by a launch timeout or shutdown
            await _stop_driver(playwright)
            raise
        return PlaywrightSession(playwright, browser)
