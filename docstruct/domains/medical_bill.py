"""Medical bill (pharmacy invoice) field and item extraction.

Header fields are found by anchor labels ("Patient Name", "Invoice No",
"Dr.") with regex fallbacks over the whole text. Medicine lines are picked
out of the physical lines by keyword and number co-occurrence and parsed
with an ordered list of item layouts.
"""

import re
from collections.abc import Callable
from typing import Any

from docstruct.extraction.rule_extractor import (
    AnchorStrategy,
    ExtractionStrategy,
    LineKeywordStrategy,
    RegexStrategy,
    build_stop_pattern,
)
from docstruct.models import (
    MEDICAL_BILL_FIELDS,
    MEDICAL_ITEM_FIELDS,
    DocumentType,
)
from docstruct.utils.logger import get_logger

from .base import DomainExtractor, parse_number

logger = get_logger(__name__)

# Labels that end a value read after another label.
LABELS: dict[str, str] = {
    "invoiceNo": r"(?:invoice|inv|bill)\s*(?:no|number|#)\.?",
    "date": r"\bdate\b",
    "patientName": r"patient\s*name",
    "phoneLabel": r"(?:ph(?:one)?\.?\s*no|mob(?:ile)?(?:\s*no)?)\b\.?",
    "prescribedBy": r"prescribed\s*by",
    "doctor": r"(?:dr|doctor)\b\.?",
    "gst": r"gst(?:in)?\b",
    "amountInWords": r"amount\s*in\s*words",
}
STOP_PATTERN = build_stop_pattern(LABELS.values())

_AMOUNT = r"(?:rs\.?|₹|inr)?\s*([\d,]*\d(?:\.\d+)?)"
_SIGNED_AMOUNT = r"(?:rs\.?|₹|inr)?\s*([+-]?[\d,]*\d(?:\.\d+)?)"
_PHONE = r"(?<!\d)(\d{10})(?!\d)"
_DATE = (
    r"\b(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}"
    r"|\d{1,2}[\s\-][A-Za-z]{3,9}[\s\-,]+\d{2,4})\b"
)

SHOP_KEYWORDS = ("medicose", "medical", "pharmacy", "chemist", "drug house")
ADDRESS_KEYWORDS = ("shop no", "address", "floor", "road", "market", "sector")

MEDICINE_PATTERN = re.compile(
    r"\b(?:tabs?|tablets?|caps?|capsules?|syrup|syr|inj|injection|drops?|cream"
    r"|gel|ointment|susp|suspension|lotion|powder|sachet|forte)\b"
    r"|\d+\s*(?:mg|ml|mcg|gm?)\b",
    re.IGNORECASE,
)
ITEM_HEADER_KEYWORDS = (
    "s.no",
    "sno",
    "description",
    "pack",
    "mrp",
    "batch",
    "exp",
    "qty",
    "rate",
    "amount",
)
NON_ITEM_PATTERN = re.compile(
    r"sub\s*total|grand\s*total|total\s*qty|round\s*off|less\s*discount|other\s*adj"
    r"|invoice|gstin|\bdate\b|patient\s*name|ph\.?\s*no|prescribed|terms|condition"
    r"|amount\s*in\s*words|signatory|signature|thank",
    re.IGNORECASE,
)

_PACK = re.compile(r"^\d+[*xX]\d+\w*$")
_NUMBER = re.compile(r"^\d+(?:\.\d+)?$")
_DECIMAL = re.compile(r"^\d+\.\d+$")
_EXPIRY = re.compile(r"^\d{1,2}[/\-]\d{2,4}$")
_CODE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z0-9\-]+$")

_NUMERIC_TOTALS = frozenset(
    {"totalQty", "subTotal", "lessDiscount", "otherAdj", "roundOff", "grandTotal"}
)


def _has_letters(value: str) -> bool:
    return bool(re.search(r"[A-Za-z]", value))


def _is_person_name(value: str) -> bool:
    return bool(re.fullmatch(r"[A-Za-z][A-Za-z .']*", value))


def _has_digit(value: str) -> bool:
    return bool(re.search(r"\d", value))


def _shop_name(line: str) -> str:
    """Keep the words of a line up to the shop keyword."""
    words = line.split()
    for index, word in enumerate(words):
        if any(k in word.lower() for k in SHOP_KEYWORDS if " " not in k):
            return " ".join(words[: index + 1])
    return " ".join(words[:6])


def _empty_item() -> dict[str, Any]:
    numeric = {"sNo", "mrp", "qty", "rate", "amount"}
    return {name: 0 if name in numeric else "" for name in MEDICAL_ITEM_FIELDS}


def _to_int(value: str) -> int:
    return int(parse_number(value))


def _clean_tokens(line: str) -> list[str]:
    return re.sub(r"[|:;]", " ", line).split()


def _split_serial(tokens: list[str]) -> tuple[int, list[str]]:
    if tokens and re.fullmatch(r"\d{1,3}\.?", tokens[0]) and len(tokens) > 1:
        return _to_int(tokens[0].rstrip(".")), tokens[1:]
    return 0, tokens


def parse_pack_layout(line: str) -> dict[str, Any] | None:
    """Parse ``sNo description pack mrp batch exp qty rate amount`` lines."""
    serial, tokens = _split_serial(_clean_tokens(line))
    pack_index = next((i for i, t in enumerate(tokens) if _PACK.match(t)), None)
    if pack_index is None or pack_index == 0:
        return None

    item = _empty_item()
    item["sNo"] = serial
    item["itemDescription"] = " ".join(tokens[:pack_index])
    item["pack"] = tokens[pack_index]

    rest = tokens[pack_index + 1 :]
    layout: tuple[tuple[str, Callable[[str], bool], Callable[[str], Any]], ...] = (
        ("mrp", _NUMBER.match, parse_number),
        ("batchNo", lambda t: True, str),
        ("exp", _EXPIRY.match, str),
        ("qty", _NUMBER.match, _to_int),
        ("rate", _NUMBER.match, parse_number),
        ("amount", _NUMBER.match, parse_number),
    )
    for (name, accepts, convert), token in zip(layout, rest, strict=False):
        if not accepts(token):
            break
        item[name] = convert(token)

    return item if item["mrp"] else None


def parse_typed_layout(line: str) -> dict[str, Any] | None:
    """Parse lines without a pack column by token type.

    Tokens before the first decimal price form the description, so
    strengths like ``650`` stay in the name. After it, codes become the
    batch, ``MM/YY`` tokens the expiry, and numbers fill ``mrp, qty, rate,
    amount`` in that order.
    """
    serial, tokens = _split_serial(_clean_tokens(line))
    first_price = next((i for i, t in enumerate(tokens) if _DECIMAL.match(t)), None)
    if first_price is None:
        return None

    item = _empty_item()
    item["sNo"] = serial
    item["itemDescription"] = " ".join(tokens[:first_price])
    if len(item["itemDescription"]) < 3:
        return None

    numbers: list[str] = []
    for token in tokens[first_price:]:
        if _NUMBER.match(token):
            numbers.append(token)
        elif _EXPIRY.match(token):
            item["exp"] = token
        elif _CODE.match(token) and not item["batchNo"]:
            item["batchNo"] = token

    for name, token in zip(("mrp", "qty", "rate", "amount"), numbers, strict=False):
        item[name] = _to_int(token) if name == "qty" else parse_number(token)
    return item


ITEM_LAYOUTS: tuple[Callable[[str], dict[str, Any] | None], ...] = (
    parse_pack_layout,
    parse_typed_layout,
)


def is_item_header(line: str) -> bool:
    lowered = line.lower()
    return sum(1 for k in ITEM_HEADER_KEYWORDS if k in lowered) >= 3


def is_medicine_line(line: str) -> bool:
    """Medicine keyword plus a price or pack pattern on the same line."""
    if not MEDICINE_PATTERN.search(line):
        return False
    return bool(re.search(r"\d+\.\d+|\d+[*xX]\d+", line))


def extract_items(text: str) -> list[dict[str, Any]]:
    """Find and parse medicine lines in reading order."""
    items: list[dict[str, Any]] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or is_item_header(line) or NON_ITEM_PATTERN.search(line):
            continue
        if not is_medicine_line(line):
            continue
        for layout in ITEM_LAYOUTS:
            item = layout(line)
            if item is not None and _has_letters(item["itemDescription"]):
                items.append(item)
                break
        else:
            logger.debug("Could not parse medicine line %r", line)
    return items


def _total(label: str, amount: str = _AMOUNT) -> RegexStrategy:
    return RegexStrategy(rf"{label}[\s:.\-=]*{amount}", name="total_label")


class MedicalBillExtractor(DomainExtractor):
    """Extracts medical bill fields and medicine items."""

    document_type = DocumentType.MEDICAL_BILL
    fields = MEDICAL_BILL_FIELDS
    numeric_fields = _NUMERIC_TOTALS
    list_fields = frozenset({"phone"})
    confidence_weights = {
        "invoiceNo": 10,
        "date": 10,
        "shopName": 10,
        "patientName": 10,
        "grandTotal": 15,
        "items": 20,
        "completeItems": 10,
        "phone": 5,
        "amountInWords": 5,
    }

    def default_strategies(self) -> dict[str, list[ExtractionStrategy]]:
        stop = STOP_PATTERN
        return {
            "invoiceNo": [
                AnchorStrategy(LABELS["invoiceNo"], 1, stop, validator=_has_digit),
                RegexStrategy(
                    r"\b(?:invoice|inv|bill)\b[\s.:#\-]*(?:no\.?)?[\s.:#\-]*"
                    r"([A-Z]*\d[\w\-/]*)"
                ),
            ],
            "date": [
                AnchorStrategy(
                    LABELS["date"],
                    1,
                    stop,
                    validator=lambda v: bool(re.fullmatch(_DATE, v)),
                ),
                RegexStrategy(_DATE),
            ],
            "shopName": [
                LineKeywordStrategy(
                    SHOP_KEYWORDS,
                    transform=_shop_name,
                    validator=lambda v: len(v) > 3,
                )
            ],
            "shopAddress": [
                LineKeywordStrategy(ADDRESS_KEYWORDS, validator=lambda v: len(v) > 5)
            ],
            "patientName": [
                AnchorStrategy(
                    LABELS["patientName"], 3, stop, validator=_is_person_name
                )
            ],
            "patientPhone": [
                RegexStrategy(rf"patient\s*name[^\n]*?{_PHONE}", name="patient_line"),
                AnchorStrategy(
                    LABELS["phoneLabel"],
                    1,
                    validator=lambda v: bool(re.fullmatch(r"\d{10}", v)),
                ),
            ],
            "prescribedBy": [
                AnchorStrategy(
                    LABELS["prescribedBy"] + r"[\s:]*(?:dr\b\.?|doctor\b)?",
                    3,
                    stop,
                    validator=_is_person_name,
                )
            ],
            "doctorName": [
                AnchorStrategy(
                    r"\b" + LABELS["doctor"] + r"(?:\s*name\b)?",
                    3,
                    stop,
                    validator=_is_person_name,
                )
            ],
            "doctorPhone": [
                RegexStrategy(rf"\b(?:dr|doctor)\b[^\n]*?{_PHONE}", name="doctor_line")
            ],
            "totalQty": [_total(r"total\s*qty", r"(\d+)")],
            "subTotal": [_total(r"sub\s*total")],
            "lessDiscount": [_total(r"less\s*discount")],
            "otherAdj": [_total(r"other\s*adj\w*\.?", _SIGNED_AMOUNT)],
            "roundOff": [_total(r"round\s*off", _SIGNED_AMOUNT)],
            "grandTotal": [
                _total(r"grand\s*total"),
                _total(r"(?:net|total)\s*(?:amount|payable)"),
            ],
            "amountInWords": [
                AnchorStrategy(
                    LABELS["amountInWords"], 8, validator=_has_letters
                ),
                RegexStrategy(
                    r"\b((?:rupees|rs\.?)\s+[a-z\s\-]+?\s+only)\b", name="words_regex"
                ),
            ],
        }

    def post_process(
        self, text: str, fields: dict[str, Any], sources: dict[str, str]
    ) -> list[dict[str, Any]]:
        phones = RegexStrategy(_PHONE).find_all(text)
        if phones:
            fields["phone"] = phones
            sources["phone"] = "regex"
        if fields["totalQty"]:
            fields["totalQty"] = int(fields["totalQty"])
        return extract_items(text)

    def extra_scoring(
        self, fields: dict[str, Any], items: list[dict[str, Any]]
    ) -> dict[str, Any]:
        complete = bool(items) and all(
            item["itemDescription"] and item["qty"] and item["amount"]
            for item in items
        )
        return {"completeItems": complete}
