"""Palette catalog and color index resolution.

Pixels travel as small integer indices into a shared, versioned palette
instead of full RGBA values. Two orderings are part of the wire contract:

* the order of colors inside a :class:`Palette` defines ``ColorIndex``;
* the order of palettes inside a :class:`PaletteSet` defines the palette
  *ordinal* used by compact storage.

Both must only ever grow by appending. :class:`PaletteRegistry` is immutable;
:meth:`PaletteRegistry.append` returns a new registry and is the only way to
add a palette.

Lookups that miss (unknown palette id, out-of-range ordinal) do not raise:
they resolve to the default palette. Callers depend on that leniency.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from pyrsistent import pmap, pvector
from pyrsistent.typing import PMap, PVector

from infiniplace.types import RGBA, ColorIndex, PaletteOrdinal


@dataclass(frozen=True)
class Palette:
    """Versioned, ordered list of colors.

    Attributes:
        id: Stable identifier (``"classic"``). Sent on the wire.
        name: Display name.
        version: Bumped whenever the colors change.
        colors: ``#RRGGBBAA`` strings; position is the ``ColorIndex``.
    """

    id: str
    name: str
    version: int
    colors: PVector[str]

    def __len__(self) -> int:
        return len(self.colors)


@dataclass(frozen=True)
class PaletteSet:
    """Ordered palettes plus the id of the default one."""

    palettes: PVector[Palette]
    default_palette_id: str


def make_palette(id: str, name: str, version: int, colors: Iterable[str]) -> Palette:
    """Build a :class:`Palette`, checking every entry is a hex color."""
    colors = pvector(colors)
    for color in colors:
        parse_hex_color(color)
    return Palette(id=id, name=name, version=version, colors=colors)


def _normalize_hex(color: str) -> str:
    return f"{color.upper()}FF" if len(color) == 7 else color.upper()


def parse_hex_color(color: str) -> RGBA:
    """Parse ``#RRGGBB`` or ``#RRGGBBAA`` into an ``(r, g, b, a)`` tuple.

    Raises:
        ValueError: If ``color`` is not a 6 or 8 digit hex color.
    """
    if not color.startswith("#") or len(color) not in (7, 9):
        raise ValueError(f"Invalid hex color: {color!r}")
    digits = _normalize_hex(color)[1:]
    try:
        r, g, b, a = (int(digits[i : i + 2], 16) for i in range(0, 8, 2))
    except ValueError:
        raise ValueError(f"Invalid hex color: {color!r}") from None
    return (r, g, b, a)


def find_color_index(color: str, palette: Optional[Palette] = None) -> int:
    """Return the index of ``color`` in ``palette`` or ``-1``.

    ``#RRGGBB`` is treated as opaque (``FF`` alpha appended) and comparison
    is case-insensitive. The first matching entry wins. ``palette`` defaults
    to :data:`DEFAULT_PALETTE`.
    """
    target = _normalize_hex(color)
    if palette is None:
        palette = DEFAULT_PALETTE
    for idx, entry in enumerate(palette.colors):
        if _normalize_hex(entry) == target:
            return idx
    return -1


def is_valid_color_index(idx: object, palette: Optional[Palette] = None) -> bool:
    """True iff ``idx`` is an ``int`` in ``[0, len(palette.colors))``."""
    if palette is None:
        palette = DEFAULT_PALETTE
    if isinstance(idx, bool) or not isinstance(idx, int):
        return False
    return 0 <= idx < len(palette.colors)


@dataclass(frozen=True)
class PaletteRegistry:
    """Immutable palette catalog with id/ordinal resolution.

    Build once at startup and share by reference. The id index is derived in
    ``__post_init__`` and never changes afterwards.

    Raises:
        ValueError: On duplicate palette ids, an empty set, or a default id
            that is not part of the set.
    """

    palette_set: PaletteSet
    _ordinals: PMap[str, PaletteOrdinal] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        palettes = self.palette_set.palettes
        if len(palettes) == 0:
            raise ValueError("Palette set must contain at least one palette")
        ordinals: dict[str, PaletteOrdinal] = {}
        for ordinal, palette in enumerate(palettes):
            if palette.id in ordinals:
                raise ValueError(f"Duplicate palette id: {palette.id!r}")
            ordinals[palette.id] = ordinal
        if self.palette_set.default_palette_id not in ordinals:
            raise ValueError(
                f"Default palette {self.palette_set.default_palette_id!r} is not in the set"
            )
        object.__setattr__(self, "_ordinals", pmap(ordinals))

    @property
    def palettes(self) -> PVector[Palette]:
        return self.palette_set.palettes

    @property
    def default_palette(self) -> Palette:
        return self.palettes[self._ordinals[self.palette_set.default_palette_id]]

    @property
    def default_ordinal(self) -> PaletteOrdinal:
        return self._ordinals[self.palette_set.default_palette_id]

    def get_palette_by_id(self, id: str) -> Optional[Palette]:
        ordinal = self._ordinals.get(id)
        return None if ordinal is None else self.palettes[ordinal]

    def palette_id_to_ordinal(self, id: str) -> PaletteOrdinal:
        """Catalog position of ``id``; unknown ids map to the default's ordinal."""
        return self._ordinals.get(id, self.default_ordinal)

    def ordinal_to_palette_id(self, ordinal: int) -> str:
        """Palette id at ``ordinal``; anything out of range maps to the default id."""
        if (
            isinstance(ordinal, bool)
            or not isinstance(ordinal, int)
            or not 0 <= ordinal < len(self.palettes)
        ):
            return self.palette_set.default_palette_id
        return self.palettes[ordinal].id

    def resolve(self, id: Optional[str]) -> Palette:
        """Palette for ``id`` with the same fallback as ordinal lookup."""
        return self.palettes[self.palette_id_to_ordinal(id or "")]

    def append(self, palette: Palette) -> "PaletteRegistry":
        """Return a new registry with ``palette`` added after all existing ones."""
        return PaletteRegistry(
            PaletteSet(
                palettes=self.palettes.append(palette),
                default_palette_id=self.palette_set.default_palette_id,
            )
        )

    def baseline_color_index(self) -> ColorIndex:
        """Index of white in the default palette, or 0 if it has no white."""
        idx = find_color_index("#FFFFFF", self.default_palette)
        return ColorIndex(idx if idx >= 0 else 0)


CLASSIC_PALETTE = make_palette(
    "classic",
    "Classic",
    3,
    [
        "#FFFFFFFF",  # white
        "#FFAAFFFF",  # light pink
        "#FF55FFFF",  # pink
        "#FF00FFFF",  # magenta
        "#FFFF00FF",  # yellow
        "#FFAA00FF",  # gold
        "#FF5500FF",  # orange
        "#FF0000FF",  # red
        "#00FFFFFF",  # cyan
        "#00AAFFFF",  # light blue
        "#0055FFFF",  # blue
        "#0000FFFF",  # dark blue
        "#00FF00FF",  # lime
        "#00AA00FF",  # green
        "#005500FF",  # dark green
        "#000000FF",  # black
    ],
)

EARTH_PALETTE = make_palette(
    "earth",
    "Earth Tones",
    1,
    [
        "#F3E5D0FF",
        "#E9D5B3FF",
        "#DFC49AFF",
        "#D4B183FF",
        "#C9A069FF",
        "#B78A56FF",
        "#A67845FF",
        "#946838FF",
        "#81572DFF",
        "#6D4824FF",
        "#5A3B1CFF",
        "#4A2E17FF",
        "#3B2312FF",
        "#2D1A0EFF",
        "#1F120AFF",
        "#120A05FF",
    ],
)

SHADES_PALETTE = make_palette(
    "shades",
    "Shades",
    1,
    [
        "#FFFFFFFF",
        "#F5F5F5FF",
        "#EBEBEBFF",
        "#E0E0E0FF",
        "#D6D6D6FF",
        "#CCCCCCFF",
        "#C2C2C2FF",
        "#B8B8B8FF",
        "#ADADADFF",
        "#A3A3A3FF",
        "#999999FF",
        "#8F8F8FFF",
        "#858585FF",
        "#7A7A7AFF",
        "#707070FF",
        "#000000FF",
    ],
)

# Append-only: new palettes go at the end.
PALETTE_SET = PaletteSet(
    palettes=pvector([CLASSIC_PALETTE, EARTH_PALETTE, SHADES_PALETTE]),
    default_palette_id=CLASSIC_PALETTE.id,
)

DEFAULT_REGISTRY = PaletteRegistry(PALETTE_SET)
DEFAULT_PALETTE = DEFAULT_REGISTRY.default_palette

DEFAULT_BASELINE_COLOR_INDEX = DEFAULT_REGISTRY.baseline_color_index()
DEFAULT_BASELINE_PALETTE_ID = DEFAULT_PALETTE.id
DEFAULT_BASELINE_PALETTE_ORDINAL = DEFAULT_REGISTRY.palette_id_to_ordinal(
    DEFAULT_BASELINE_PALETTE_ID
)


def get_palette_by_id(id: str) -> Optional[Palette]:
    return DEFAULT_REGISTRY.get_palette_by_id(id)


def palette_id_to_ordinal(id: str) -> PaletteOrdinal:
    return DEFAULT_REGISTRY.palette_id_to_ordinal(id)


def ordinal_to_palette_id(ordinal: int) -> str:
    return DEFAULT_REGISTRY.ordinal_to_palette_id(ordinal)
