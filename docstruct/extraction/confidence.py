"""Confidence scoring for extracted tables and domain documents."""

import re
from collections.abc import Iterable, Mapping
from typing import Any

import numpy as np

from docstruct.models import INVOICE_FIELDS
from docstruct.utils.config import ScoringConfig

_HSN = re.compile(r"^\d{4,8}$")
_PRICED_FIELDS = ("MRP", "Rate", "Amount")


def is_filled(value: Any) -> bool:
    """Empty strings, zero numbers, ``None`` and empty lists count as missing."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


class ConfidenceScorer:
    """Scores rows by field completeness and pattern strength.

    Args:
        config: Point values.
    """

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self.config = config or ScoringConfig()

    def possible_points(self, fields: Iterable[str]) -> int:
        fields = list(fields)
        bonuses = 0
        if "Product" in fields:
            bonuses += 1
        if "HSN" in fields:
            bonuses += 1
        bonuses += sum(1 for f in _PRICED_FIELDS if f in fields)
        cfg = self.config
        return cfg.field_points * len(fields) + cfg.bonus_points * bonuses

    def score_row(
        self, row: Mapping[str, Any], fields: Iterable[str] = INVOICE_FIELDS
    ) -> float:
        """Return the 0-100 score of one mapped row."""
        fields = list(fields)
        possible = self.possible_points(fields)
        if possible == 0:
            return 0.0

        cfg = self.config
        achieved = cfg.field_points * sum(1 for f in fields if is_filled(row.get(f)))

        product = row.get("Product")
        if "Product" in fields and isinstance(product, str):
            if len(product.strip()) >= cfg.min_product_length:
                achieved += cfg.bonus_points
        if "HSN" in fields and _HSN.match(str(row.get("HSN", ""))):
            achieved += cfg.bonus_points
        for name in _PRICED_FIELDS:
            value = row.get(name)
            if name in fields and isinstance(value, (int, float)) and value > 0:
                achieved += cfg.bonus_points

        return achieved / possible * 100

    def score_table(
        self, rows: list[Mapping[str, Any]], fields: Iterable[str] = INVOICE_FIELDS
    ) -> float:
        """Mean row score clamped to [0, 100]; 0 when there are no rows."""
        if not rows:
            return 0.0
        fields = list(fields)
        scores = np.array([self.score_row(row, fields) for row in rows], dtype=float)
        return round(float(np.clip(scores.mean(), 0.0, 100.0)), 2)

    @staticmethod
    def score_fields(
        fields: Mapping[str, Any], weights: Mapping[str, float]
    ) -> float:
        """Weighted completeness of named fields, as a 0-100 score.

        Args:
            fields: Extracted values keyed by field name.
            weights: Points awarded when the field is filled.
        """
        total = float(sum(weights.values()))
        if total <= 0:
            return 0.0
        achieved = sum(w for name, w in weights.items() if is_filled(fields.get(name)))
        return round(min(100.0, max(0.0, achieved / total * 100)), 2)
