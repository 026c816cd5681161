"""Positioned OCR fragments and the spatial OCR result container.

Vision-style OCR services return a list of ``{text, confidence,
boundingBox}`` detections. This module turns those payloads into immutable
:class:`TextFragment` values, deriving a fragment's anchor point from its
bounding polygon when explicit ``x``/``y`` are missing, and dropping
fragments that carry no usable position.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from docstruct.utils.logger import get_logger

logger = get_logger(__name__)

Point = tuple[float, float]


@dataclass(frozen=True)
class TextFragment:
    """A single recognized token or phrase with its position."""

    text: str
    x: float
    y: float
    confidence: float = 1.0
    bounding_box: tuple[Point, ...] | None = None

    @property
    def left(self) -> float:
        if self.bounding_box:
            return min(p[0] for p in self.bounding_box)
        return self.x

    @property
    def right(self) -> float:
        if self.bounding_box:
            return max(p[0] for p in self.bounding_box)
        return self.x

    @property
    def height(self) -> float | None:
        """Vertical extent of the bounding polygon, if one was supplied."""
        if not self.bounding_box:
            return None
        ys = [p[1] for p in self.bounding_box]
        return max(ys) - min(ys)


@dataclass(frozen=True)
class SpatialResult:
    """Full text plus positioned fragments from a spatial OCR engine."""

    full_text: str = ""
    fragments: tuple[TextFragment, ...] = field(default_factory=tuple)
    dropped_fragments: int = 0


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _parse_vertices(raw: Any) -> tuple[Point, ...] | None:
    """Parse ``[{"x": .., "y": ..}, ...]`` or ``[(x, y), ...]`` polygons."""
    if not raw or not isinstance(raw, (list, tuple)):
        return None
    points: list[Point] = []
    for vertex in raw:
        if isinstance(vertex, Mapping):
            # Vision omits zero coordinates from vertices.
            vx = _as_number(vertex.get("x", 0))
            vy = _as_number(vertex.get("y", 0))
        elif isinstance(vertex, (list, tuple)) and len(vertex) == 2:
            vx, vy = _as_number(vertex[0]), _as_number(vertex[1])
        else:
            return None
        if vx is None or vy is None:
            return None
        points.append((vx, vy))
    return tuple(points) if points else None


def fragment_from_mapping(raw: Mapping[str, Any]) -> TextFragment | None:
    """Build a fragment from an OCR detection mapping.

    Accepted keys: ``text`` (or ``description``), ``x``, ``y``,
    ``confidence`` and ``boundingBox`` (or ``bounding_box``). When ``x`` or
    ``y`` is missing the mean of the polygon vertices is used.

    Returns:
        The fragment, or ``None`` when the detection has no text or no
        usable coordinates.
    """
    text = raw.get("text", raw.get("description"))
    if not isinstance(text, str) or not text.strip():
        return None

    box = _parse_vertices(raw.get("boundingBox", raw.get("bounding_box")))
    x = _as_number(raw.get("x"))
    y = _as_number(raw.get("y"))
    if box is not None:
        if x is None:
            x = sum(p[0] for p in box) / len(box)
        if y is None:
            y = sum(p[1] for p in box) / len(box)
    if x is None or y is None:
        return None

    confidence = _as_number(raw.get("confidence"))
    if confidence is None:
        confidence = 1.0
    elif confidence > 1.0:
        # Some engines report percentages.
        confidence = confidence / 100.0

    return TextFragment(
        text=text.strip(),
        x=x,
        y=y,
        confidence=max(0.0, min(1.0, confidence)),
        bounding_box=box,
    )


def parse_fragments(
    raw_fragments: Iterable[TextFragment | Mapping[str, Any]],
) -> tuple[list[TextFragment], int]:
    """Validate a mixed list of fragments and detection mappings.

    Args:
        raw_fragments: ``TextFragment`` instances or detection mappings.

    Returns:
        Tuple of (usable fragments, number of dropped fragments).

    Raises:
        TypeError: If an element is neither a fragment nor a mapping.
    """
    fragments: list[TextFragment] = []
    dropped = 0
    for item in raw_fragments:
        if isinstance(item, TextFragment):
            fragment: TextFragment | None = item
            if not item.text.strip() or _as_number(item.x) is None or _as_number(
                item.y
            ) is None:
                fragment = None
        elif isinstance(item, Mapping):
            fragment = fragment_from_mapping(item)
        else:
            raise TypeError(
                f"Fragments must be TextFragment or mapping, got {type(item).__name__}"
            )

        if fragment is None:
            dropped += 1
        else:
            fragments.append(fragment)

    if dropped:
        logger.warning("Dropped %d malformed fragments before clustering", dropped)
    return fragments, dropped


def spatial_result_from_mapping(raw: Mapping[str, Any]) -> SpatialResult:
    """Build a :class:`SpatialResult` from ``{"fullText", "fragments"}``.

    ``text``/``full_text`` and ``textBlocks``/``words`` are accepted as
    aliases so raw payloads from the common OCR adapters work unchanged.
    """
    full_text = raw.get("fullText", raw.get("full_text", raw.get("text", "")))
    if full_text is None:
        full_text = ""
    if not isinstance(full_text, str):
        raise TypeError("fullText must be a string")

    raw_fragments = raw.get(
        "fragments", raw.get("textBlocks", raw.get("words", []))
    ) or []
    if not isinstance(raw_fragments, (list, tuple)):
        raise TypeError("fragments must be a list")

    fragments, dropped = parse_fragments(raw_fragments)
    return SpatialResult(
        full_text=full_text, fragments=tuple(fragments), dropped_fragments=dropped
    )
