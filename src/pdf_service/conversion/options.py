from dataclasses import dataclass


@dataclass(frozen=True)
class Margins:
    top: str
    right: str
    bottom: str
    left: str

    @classmethod
    def uniform(cls, value: str) -> "Margins":
        return cls(top=value, right=value, bottom=value, left=value)

    def as_dict(self) -> dict[str, str]:
        return {"top": self.top, "right": self.right, "bottom": self.bottom, "left": self.left}


MARGIN_PRESETS: dict[str, Margins] = {
    "none": Margins.uniform("0"),
    "narrow": Margins.uniform("10mm"),
    "normal": Margins.uniform("15mm"),
    "wide": Margins.uniform("25mm"),
}
DEFAULT_MARGIN_PRESET = "normal"
DEFAULT_PAGE_SIZE = "A4"
ORIENTATIONS = ("portrait", "landscape")


def resolve_margins(preset: str | None) -> Margins:
    """Map a preset name to margins; unknown names fall back to ``normal``."""
    return MARGIN_PRESETS.get((preset or "").strip().lower(), MARGIN_PRESETS[DEFAULT_MARGIN_PRESET])


def _parse_scale(raw: object) -> float:
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 1.0
    # float() accepts "nan" and "inf"; neither is a usable scale
    if not value > 0 or value == float("inf"):
        return 1.0
    return value


@dataclass(frozen=True)
class ExportSettings:
    """What the engine needs to lay out the PDF."""

    page_size: str
    margins: Margins
    scale: float
    landscape: bool
    print_background: bool = True


@dataclass(frozen=True)
class RenderOptions:
    page_size: str = DEFAULT_PAGE_SIZE
    orientation: str = "portrait"
    margin_preset: str = DEFAULT_MARGIN_PRESET
    scale: float = 1.0

    @classmethod
    def from_form(
        cls,
        page_size: str | None = None,
        orientation: str | None = None,
        margin: str | None = None,
        scale: object = None,
    ) -> "RenderOptions":
        """Build options from loosely typed form fields, applying defaults."""
        orient = (orientation or "").strip().lower()
        preset = (margin or "").strip().lower()
        return cls(
            page_size=(page_size or "").strip() or DEFAULT_PAGE_SIZE,
            orientation=orient if orient in ORIENTATIONS else "portrait",
            margin_preset=preset if preset in MARGIN_PRESETS else DEFAULT_MARGIN_PRESET,
            scale=_parse_scale(scale),
        )

    @property
    def landscape(self) -> bool:
        return self.orientation == "landscape"

    def export_settings(self) -> ExportSettings:
        return ExportSettings(
            page_size=self.page_size,
            margins=resolve_margins(self.margin_preset),
            scale=self.scale,
            landscape=self.landscape,
        )
