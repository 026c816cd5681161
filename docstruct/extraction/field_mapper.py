"""Greedy assignment of row segments to canonical invoice fields.

Segments are consumed left to right. Each one is offered to an ordered list
of :class:`FieldRule` objects and lands in the first open slot of the first
rule that both matches it and still has room. Unmatched segments are
dropped. The pass is order dependent and makes no attempt to find a
globally best assignment.
"""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from docstruct.models import INVOICE_FIELDS, NUMERIC_INVOICE_FIELDS, Row
from docstruct.utils.logger import get_logger

logger = get_logger(__name__)

_CURRENCY = r"(?:₹|\$|€|£|rs\.?|inr)"
_DECIMAL = re.compile(rf"^{_CURRENCY}?\s*\d[\d,]*\.\d+$", re.I)
_CURRENCY_MARKED = re.compile(rf"^{_CURRENCY}\s*\d[\d,]*(?:\.\d+)?$", re.I)
_PERCENT = re.compile(r"^\d{1,2}(?:\.\d+)?\s*%$")
_HSN = re.compile(r"^\d{4,8}$")
_INTEGER = re.compile(r"^\d{1,3}$")
_LETTER = re.compile(r"[A-Za-z]")
_DIGIT = re.compile(r"\d")
_CODE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9\-/]*$")


def parse_amount(text: str) -> float | None:
    """Parse a money or percentage string like ``"Rs. 1,200.50"``."""
    cleaned = re.sub(rf"^{_CURRENCY}\s*", "", text.strip(), flags=re.I)
    cleaned = cleaned.replace(",", "").rstrip("%").strip()
    try:
        return float(cleaned)
    except ValueError:
        return None


def is_product(segment: str) -> bool:
    """Text with letters, longer than 3 chars, and not purely numeric.

    Currency-marked amounts such as ``"Rs 120"`` count as numeric.
    """
    if len(segment) <= 3 or not _LETTER.search(segment):
        return False
    return parse_amount(segment) is None


def is_hsn(segment: str) -> bool:
    return bool(_HSN.match(segment))


def is_batch(segment: str) -> bool:
    return bool(
        _CODE.match(segment) and _LETTER.search(segment) and _DIGIT.search(segment)
    )


def is_money(segment: str) -> bool:
    return bool(_DECIMAL.match(segment) or _CURRENCY_MARKED.match(segment))


def is_percentage(segment: str) -> bool:
    return bool(_PERCENT.match(segment))


def is_quantity(segment: str) -> bool:
    return bool(_INTEGER.match(segment)) and 1 <= int(segment) <= 999


@dataclass(frozen=True)
class FieldRule:
    """A segment predicate and the slots it may fill, in fill order."""

    name: str
    predicate: Callable[[str], bool]
    slots: tuple[str, ...]
    convert: Callable[[str], Any] = str


DEFAULT_RULES: tuple[FieldRule, ...] = (
    FieldRule("product", is_product, ("Product",)),
    FieldRule("hsn", is_hsn, ("HSN",)),
    FieldRule("batch", is_batch, ("Batch",)),
    FieldRule(
        "money", is_money, ("MRP", "Rate", "Amount", "SGST", "CGST"), parse_amount
    ),
    FieldRule("tax_percentage", is_percentage, ("SGST", "CGST"), parse_amount),
    FieldRule("quantity", is_quantity, ("Qty",), int),
)


@dataclass
class SlotSet:
    """Per-row record of which canonical slots are still open."""

    allowed: tuple[str, ...] = INVOICE_FIELDS
    values: dict[str, Any] = field(default_factory=dict)

    def is_open(self, name: str) -> bool:
        return name in self.allowed and name not in self.values

    def first_open(self, candidates: Iterable[str]) -> str | None:
        return next((c for c in candidates if self.is_open(c)), None)

    def fill(self, name: str, value: Any) -> None:
        if not self.is_open(name):
            raise ValueError(f"Slot {name} is not open")
        self.values[name] = value

    def to_row(self, fields: Iterable[str]) -> dict[str, Any]:
        """Render every field, using empty defaults for unfilled slots."""
        return {
            name: self.values.get(name, 0 if name in NUMERIC_INVOICE_FIELDS else "")
            for name in fields
        }


class FieldMapper:
    """Maps the segments of data rows onto canonical invoice fields.

    Args:
        rules: Ordered field rules. Defaults to :data:`DEFAULT_RULES`.
    """

    def __init__(self, rules: Iterable[FieldRule] | None = None) -> None:
        self.rules = tuple(rules) if rules is not None else DEFAULT_RULES

    def map_segments(
        self,
        segments: Iterable[str],
        allowed: Iterable[str] | None = None,
    ) -> SlotSet:
        """Assign segments to slots in a single left-to-right pass.

        Args:
            segments: Cell texts in reading order.
            allowed: Canonical fields that may be filled. Defaults to the
                whole invoice vocabulary.

        Returns:
            The filled slot set.
        """
        slots = SlotSet(allowed=tuple(allowed) if allowed else INVOICE_FIELDS)
        for raw in segments:
            segment = raw.strip()
            if not segment:
                continue
            for rule in self.rules:
                if not rule.predicate(segment):
                    continue
                slot = slots.first_open(rule.slots)
                if slot is None:
                    continue
                value = rule.convert(segment)
                if value is None:
                    continue
                slots.fill(slot, value)
                break
            else:
                logger.debug("Dropped unmatched segment %r", segment)
        return slots

    def map_row(
        self,
        row: Row,
        headers: Iterable[str] = INVOICE_FIELDS,
    ) -> dict[str, Any]:
        """Map one data row to a dict keyed by exactly ``headers``."""
        headers = tuple(headers)
        slots = self.map_segments(row.non_empty_cells, allowed=headers)
        return slots.to_row(headers)
