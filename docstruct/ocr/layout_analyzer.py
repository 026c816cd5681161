"""Spatial clustering of OCR fragments into reading-order rows.

Fragments are sorted top-to-bottom, grouped into rows by vertical
proximity, and ordered left-to-right within each row. Adjacent fragments on
the same row can be merged into a single cell when their bounding boxes are
close enough to be the same phrase.
"""

import numpy as np

from docstruct.models import Row
from docstruct.utils.config import ClusteringConfig
from docstruct.utils.logger import get_logger

from .fragments import TextFragment

logger = get_logger(__name__)


class BlockClusterer:
    """Groups positioned fragments into ordered rows.

    Args:
        config: Clustering tunables (row tolerance, cell gap, ...).
    """

    def __init__(self, config: ClusteringConfig | None = None) -> None:
        self.config = config or ClusteringConfig()

    def cluster(self, fragments: list[TextFragment]) -> list[Row]:
        """Group fragments into rows ordered top-to-bottom.

        A fragment joins the current row when its ``y`` is within the row
        tolerance of the previous fragment placed in that row; otherwise the
        row is closed and a new one starts.

        Args:
            fragments: Fragments with valid coordinates.

        Returns:
            Rows in reading order, each ordered left-to-right.
        """
        if not fragments:
            return []

        tolerance = self.row_tolerance(fragments)
        ordered = sorted(fragments, key=lambda f: (f.y, f.x))

        groups: list[list[TextFragment]] = []
        current: list[TextFragment] = []
        last_y: float | None = None

        for fragment in ordered:
            if last_y is None or abs(fragment.y - last_y) <= tolerance:
                current.append(fragment)
            else:
                groups.append(current)
                current = [fragment]
            last_y = fragment.y
        if current:
            groups.append(current)

        rows = [self._build_row(group) for group in groups]
        logger.info(
            "Clustered %d fragments into %d rows (tolerance=%.1f)",
            len(fragments),
            len(rows),
            tolerance,
        )
        return rows

    def row_tolerance(self, fragments: list[TextFragment]) -> float:
        """Return the vertical tolerance to use for these fragments.

        With ``adaptive_tolerance`` enabled the tolerance scales with the
        median bounding box height; otherwise the configured constant is
        used.
        """
        if not self.config.adaptive_tolerance:
            return self.config.row_tolerance

        heights = [h for f in fragments if (h := f.height) is not None and h > 0]
        if not heights:
            return self.config.row_tolerance
        return float(np.median(heights)) * self.config.tolerance_height_ratio

    def _build_row(self, group: list[TextFragment]) -> Row:
        """Order a closed row by ``x`` and merge touching fragments into cells."""
        group = sorted(group, key=lambda f: f.x)
        cells: list[str] = []
        positions: list[float] = []
        previous: TextFragment | None = None

        for fragment in group:
            if previous is not None and self._is_same_cell(previous, fragment):
                cells[-1] = f"{cells[-1]} {fragment.text}"
            else:
                cells.append(fragment.text)
                positions.append(fragment.left)
            previous = fragment

        return Row(
            cells=tuple(cells),
            fragments=tuple(group),
            positions=tuple(positions),
            y=float(np.mean([f.y for f in group])),
        )

    def _is_same_cell(self, left: TextFragment, right: TextFragment) -> bool:
        """Check whether two neighbouring fragments belong to one cell.

        Only fragments with bounding boxes can be merged, since the gap
        between them is otherwise unknown.
        """
        if not left.bounding_box or not right.bounding_box:
            return False
        gap = right.left - left.right
        return gap <= self.config.cell_gap
