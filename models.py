"""Decode options and result types."""

from dataclasses import dataclass, field, replace
from typing import Any

FORMAT_QR = "QR_CODE"

ENGINE_NATIVE = "native"
ENGINE_SOFTWARE = "software"

DEFAULT_MAX_PASSES = 6
AGGRESSIVE_MAX_PASSES = 12
DEFAULT_DOWNSCALE_MAX_DIM = 1400

RGB = tuple[int, int, int]


@dataclass(frozen=True)
class ColorHint:
    """Expected module colors.

    method selects the binarizer: "luma" thresholds at the midpoint of the
    two colors' lumas, "distance" picks whichever color is nearer in RGB.
    """

    foreground: RGB | None = None
    background: RGB | None = None
    method: str = "luma"

    @property
    def complete(self) -> bool:
        return self.foreground is not None and self.background is not None


@dataclass(frozen=True)
class DecodeOptions:
    aggressive: bool = False
    max_passes: int = DEFAULT_MAX_PASSES
    downscale_max_dim: int = DEFAULT_DOWNSCALE_MAX_DIM
    try_invert: bool = True
    color_hint: ColorHint | None = None
    use_worker: bool = True
    software_backend: str = "zxing"

    @property
    def effective_max_passes(self) -> int:
        return AGGRESSIVE_MAX_PASSES if self.aggressive else self.max_passes

    @classmethod
    def from_config(cls, cfg: dict) -> "DecodeOptions":
        """Build options from config.json keys; unknown keys are ignored."""
        kwargs: dict[str, Any] = {}
        for key in (
            "aggressive",
            "max_passes",
            "downscale_max_dim",
            "try_invert",
            "use_worker",
            "software_backend",
        ):
            if cfg.get(key) is not None:
                kwargs[key] = cfg[key]

        hint = cfg.get("color_hint")
        if hint:
            kwargs["color_hint"] = ColorHint(
                foreground=_rgb(hint.get("foreground")),
                background=_rgb(hint.get("background")),
                method=hint.get("method", "luma"),
            )
        return cls(**kwargs)

    def merged(self, **changes) -> "DecodeOptions":
        """Copy with the non-None changes applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _rgb(value) -> RGB | None:
    if value is None:
        return None
    r, g, b = value
    return int(r), int(g), int(b)


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class ResultMeta:
    engine: str
    inverted: bool | None = None
    pass_name: str | None = None


@dataclass(frozen=True)
class DecodeResult:
    text: str
    format: str = FORMAT_QR
    points: tuple[Point, ...] | None = None
    meta: ResultMeta = field(default_factory=lambda: ResultMeta(engine=ENGINE_SOFTWARE))

    def __post_init__(self):
        if not self.text:
            raise ValueError("DecodeResult text must not be empty")

    def annotate(self, engine: str, pass_name: str | None = None) -> "DecodeResult":
        """Copy tagged with the engine and pass that produced it."""
        inverted = None if pass_name is None else "invert" in pass_name
        return replace(self, meta=ResultMeta(engine=engine, inverted=inverted, pass_name=pass_name))

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "format": self.format,
            "points": None if self.points is None else [{"x": p.x, "y": p.y} for p in self.points],
            "meta": {
                "engine": self.meta.engine,
                "inverted": self.meta.inverted,
                "passName": self.meta.pass_name,
            },
        }
