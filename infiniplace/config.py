"""Canvas configuration loaded from TOML.

Example::

    [canvas]
    snapshot_base_url = "https://tiles.example.com/tiles"
    history_limit = 1024
    dedup_window_ms = 60000
    viewport_margin_tiles = 1
    default_palette_id = "classic"

    [[canvas.protected_regions]]
    x1 = 0
    y1 = 0
    x2 = 63
    y2 = 63
    reason = "logo"

``load_canvas_config`` is the entry point. All values are validated before a
:class:`CanvasConfig` is built; unknown keys only produce warnings.
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass
from typing import Any, Tuple

from pyrsistent import pvector
from pyrsistent.typing import PVector

from infiniplace.coords import TileCoord, tiles_in_viewport
from infiniplace.palette import DEFAULT_REGISTRY, PaletteRegistry, PaletteSet
from infiniplace.sequencer import (
    DEFAULT_DEDUP_WINDOW_MS,
    DEFAULT_HISTORY_LIMIT,
    ClientOpDeduplicator,
    TileSequencer,
)
from infiniplace.types import PixelX, PixelY
from infiniplace.validation import ProtectedRegion

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Fatal configuration error(s)."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("\n".join(errors))


@dataclass(frozen=True)
class CanvasConfig:
    snapshot_base_url: str = "/tiles"
    history_limit: int = DEFAULT_HISTORY_LIMIT
    dedup_window_ms: int = DEFAULT_DEDUP_WINDOW_MS
    viewport_margin_tiles: int = 1
    default_palette_id: str = "classic"
    protected_regions: PVector[ProtectedRegion] = pvector()

    def snapshot_url(self, tx: int, ty: int, seq: int) -> str:
        return f"{self.snapshot_base_url.rstrip('/')}/{tx}/{ty}.png?seq={seq}"

    def viewport_tiles(self, x: int, y: int, width: int, height: int) -> list[TileCoord]:
        """Tiles to subscribe for a viewport, padded by the configured margin."""
        return tiles_in_viewport(x, y, width, height, margin=self.viewport_margin_tiles)

    def make_registry(self, base: PaletteRegistry = DEFAULT_REGISTRY) -> PaletteRegistry:
        """``base``'s palettes (same ordinals) with this config's default palette."""
        if base.palette_set.default_palette_id == self.default_palette_id:
            return base
        return PaletteRegistry(
            PaletteSet(
                palettes=base.palettes, default_palette_id=self.default_palette_id
            )
        )

    def make_sequencer(self) -> TileSequencer:
        return TileSequencer(history_limit=self.history_limit)

    def make_deduplicator(self) -> ClientOpDeduplicator:
        return ClientOpDeduplicator(window_ms=self.dedup_window_ms)


_CANVAS_KEYS = {
    "snapshot_base_url",
    "history_limit",
    "dedup_window_ms",
    "viewport_margin_tiles",
    "default_palette_id",
    "protected_regions",
}
_REGION_KEYS = {"x1", "y1", "x2", "y2", "reason"}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(
    raw: dict[str, Any], registry: PaletteRegistry = DEFAULT_REGISTRY
) -> Tuple[list[str], list[str]]:
    """Return ``(errors, warnings)`` for a parsed TOML document."""
    errors: list[str] = []
    warnings: list[str] = []

    canvas = raw.get("canvas", {})
    if not isinstance(canvas, dict):
        return ["[canvas] must be a table"], warnings

    for key in sorted(set(canvas) - _CANVAS_KEYS):
        warnings.append(f"Unknown key canvas.{key} is ignored")

    if "snapshot_base_url" in canvas and not isinstance(canvas["snapshot_base_url"], str):
        errors.append("canvas.snapshot_base_url must be a string")

    for key, minimum in (
        ("history_limit", 1),
        ("dedup_window_ms", 0),
        ("viewport_margin_tiles", 0),
    ):
        if key in canvas:
            value = canvas[key]
            if not _is_int(value):
                errors.append(f"canvas.{key} must be an integer")
            elif value < minimum:
                errors.append(f"canvas.{key} must be >= {minimum}, got {value}")

    palette_id = canvas.get("default_palette_id")
    if palette_id is not None and not isinstance(palette_id, str):
        errors.append("canvas.default_palette_id must be a string")
    elif palette_id is not None and registry.get_palette_by_id(palette_id) is None:
        errors.append(f"canvas.default_palette_id {palette_id!r} is not a known palette")

    regions = canvas.get("protected_regions", [])
    if not isinstance(regions, list):
        errors.append("canvas.protected_regions must be an array of tables")
        regions = []
    for i, region in enumerate(regions):
        where = f"canvas.protected_regions[{i}]"
        if not isinstance(region, dict):
            errors.append(f"{where} must be a table")
            continue
        for key in ("x1", "y1", "x2", "y2"):
            if not _is_int(region.get(key)):
                errors.append(f"{where}.{key} must be an integer")
        if "reason" in region and not isinstance(region["reason"], str):
            errors.append(f"{where}.reason must be a string")
        for key in sorted(set(region) - _REGION_KEYS):
            warnings.append(f"Unknown key {where}.{key} is ignored")

    return errors, warnings


def parse_canvas_config(
    raw: dict[str, Any], registry: PaletteRegistry = DEFAULT_REGISTRY
) -> CanvasConfig:
    """Build a :class:`CanvasConfig` from a parsed TOML document.

    Raises:
        ConfigurationError: If validation reports any error.
    """
    errors, warnings = validate_config(raw, registry)
    for warning in warnings:
        logger.warning(warning)
    if errors:
        raise ConfigurationError(errors)

    canvas = raw.get("canvas", {})
    defaults = CanvasConfig()
    return CanvasConfig(
        snapshot_base_url=canvas.get("snapshot_base_url", defaults.snapshot_base_url),
        history_limit=canvas.get("history_limit", defaults.history_limit),
        dedup_window_ms=canvas.get("dedup_window_ms", defaults.dedup_window_ms),
        viewport_margin_tiles=canvas.get(
            "viewport_margin_tiles", defaults.viewport_margin_tiles
        ),
        default_palette_id=canvas.get("default_palette_id", defaults.default_palette_id),
        protected_regions=pvector(
            ProtectedRegion(
                x1=PixelX(r["x1"]),
                y1=PixelY(r["y1"]),
                x2=PixelX(r["x2"]),
                y2=PixelY(r["y2"]),
                reason=r.get("reason"),
            )
            for r in canvas.get("protected_regions", [])
        ),
    )


def load_canvas_config(
    config_path: str, registry: PaletteRegistry = DEFAULT_REGISTRY
) -> CanvasConfig:
    """Load and validate a TOML configuration file."""
    with open(config_path, "rb") as f:
        raw = tomllib.load(f)
    config = parse_canvas_config(raw, registry)
    logger.debug(f"Loaded canvas config from {config_path}: {config}")
    return config
