import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse

from pdf_service.conversion import ConversionService, JobStore, RenderOptions, ValidationError
from pdf_service.conversion.adapters import LocalStorage, PlaywrightRenderer
from pdf_service.conversion.service import check_upload_name, read_limited

logger = logging.getLogger(__name__)

# Global configuration defaults
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "10"))
DATA_DIR = Path(os.getenv("DATA_DIR", "./data")).resolve()
LOAD_TIMEOUT_SEC = float(os.getenv("LOAD_TIMEOUT_SEC", "30"))
RENDER_TIMEOUT_SEC = float(os.getenv("RENDER_TIMEOUT_SEC", "60"))
LAUNCH_TIMEOUT_SEC = float(os.getenv("LAUNCH_TIMEOUT_SEC", "30"))
RETENTION_SEC = float(os.getenv("RETENTION_SEC", "600"))
MAX_CONCURRENT_RENDERS = int(os.getenv("MAX_CONCURRENT_RENDERS", "0"))
BROWSER_CHANNEL = os.getenv("PDF_SERVICE_BROWSER_CHANNEL") or None


def build_service() -> ConversionService:
    """Wire the default service from environment configuration."""
    return ConversionService(
        store=JobStore(),
        storage=LocalStorage(str(DATA_DIR)),
        renderer=PlaywrightRenderer(channel=BROWSER_CHANNEL),
        load_timeout=LOAD_TIMEOUT_SEC,
        render_timeout=RENDER_TIMEOUT_SEC,
        launch_timeout=LAUNCH_TIMEOUT_SEC,
        retention=RETENTION_SEC,
        max_concurrent_renders=MAX_CONCURRENT_RENDERS,
    )


def get_service(request: Request) -> ConversionService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail={"code": "unavailable", "message": "service not initialized"})
    return service


def create_app(service: ConversionService | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        svc = service or build_service()
        app.state.service = svc
        await svc.start()
        yield
        await svc.stop()
        app.state.service = None

    app = FastAPI(
        title="HTML to PDF Conversion Service",
        version=os.getenv("PDF_SERVICE_VERSION", "0.1.0"),
        description="Upload an HTML document, poll conversion progress and download the rendered PDF.",
        lifespan=lifespan,
    )

    @app.get("/health")
    def health() -> dict[str, str]:
        """Basic health check endpoint."""
        return {"status": "ok"}

    @app.post("/convert")
    async def convert(
        htmlFile: UploadFile | None = File(None),
        pageSize: str | None = Form(None),
        orientation: str | None = Form(None),
        margin: str | None = Form(None),
        scale: str | None = Form(None),
        svc: ConversionService = Depends(get_service),
    ) -> dict[str, str]:
        """Accept an HTML upload and start converting it in the background.

        Returns the job id at once; progress is available from
        ``/progress/{job_id}``.
        """
        try:
            if htmlFile is None:
                raise ValidationError("No file uploaded")
            filename = check_upload_name(htmlFile.filename)
            content = await read_limited(htmlFile.read, max_bytes=MAX_UPLOAD_MB * 1024 * 1024)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail={"code": "invalid_upload", "message": str(e)})

        options = RenderOptions.from_form(page_size=pageSize, orientation=orientation, margin=margin, scale=scale)
        job_id = svc.submit(content, filename, options)
        return {"jobId": job_id, "message": "Conversion started"}

    @app.get("/progress/{job_id}")
    def progress(job_id: str, svc: ConversionService = Depends(get_service)) -> dict[str, object]:
        return svc.get_status(job_id).to_dict()

    @app.get("/download/{file_name}")
    def download(file_name: str, svc: ConversionService = Depends(get_service)) -> FileResponse:
        path = svc.storage.find_output(file_name)
        if path is None:
            raise HTTPException(status_code=404, detail={"code": "not_found", "message": "File not found"})
        return FileResponse(path, media_type="application/pdf", filename=file_name)

    return app


app = create_app()


def run() -> None:
    """Run a development ASGI server using uvicorn.

    Exposes the app at host:port (default 0.0.0.0:8080). Set PORT env var to override.
    """
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8080"))
    # Enable reload in dev unless explicitly disabled
    reload = os.getenv("RELOAD", "true").lower() in {"1", "true", "yes", "on"}

    uvicorn.run("pdf_service.webapi:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    run()
