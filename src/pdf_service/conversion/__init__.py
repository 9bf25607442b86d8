"""
Domain layer for HTML to PDF conversion.
Provides the job store, the renderer and storage gateways, and a service that
drives conversion jobs so front-ends (HTTP or others) share the same core.
"""

from .errors import (
    ConversionError,
    EngineUnavailable,
    LoadError,
    LoadTimeout,
    RenderError,
    ValidationError,
)
from .interfaces import RendererGateway, RenderSession, StorageGateway
from .options import MARGIN_PRESETS, ExportSettings, Margins, RenderOptions, resolve_margins
from .service import ConversionService
from .store import UNKNOWN_RECORD, JobRecord, JobStatus, JobStore, RetentionSweeper
