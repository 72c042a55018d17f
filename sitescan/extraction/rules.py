"""Declarative extraction rules for construction documents.

Every category is one entry in :data:`PATTERN_RULES` or
:data:`KEYWORD_RULES`: a fixed confidence, the patterns or keywords to
look for (Indonesian and English), and a builder turning a hit into a
typed field. Tables use the line-grouping heuristic in
:func:`detect_tables`.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date

from sitescan.ocr.executor import WordBox
from sitescan.utils.config import ExtractionConfig

from .fields import (
    AmountField,
    CoordinateField,
    DateField,
    ExtractedField,
    MaterialField,
    PersonnelField,
    SignatureField,
    SpecificationField,
    TableField,
)


@dataclass
class ExtractionContext:
    """Inputs shared by every extractor for one document."""

    text: str
    boxes: list[WordBox] = field(default_factory=list)
    config: ExtractionConfig = field(default_factory=ExtractionConfig)


@dataclass(frozen=True)
class PatternRule:
    """One regular expression and the kind of value it matches.

    For coordinates and specifications the kind is the field's type tag;
    for dates it is the written format.
    """

    pattern: re.Pattern[str]
    kind: str


FieldBuilder = Callable[[re.Match[str], str, float, ExtractionContext], ExtractedField]


@dataclass(frozen=True)
class CategoryRule:
    """Regex-driven category: patterns tried in order, spans never reused."""

    category: str
    confidence: float
    patterns: tuple[PatternRule, ...]
    build: FieldBuilder


KeywordBuilder = Callable[[str, str, float, ExtractionContext], ExtractedField]


@dataclass(frozen=True)
class KeywordRule:
    """Keyword-membership category mapping each keyword to a canonical label."""

    category: str
    confidence: float
    keywords: dict[str, str]
    build: KeywordBuilder


MONTH_NAMES: dict[str, int] = {
    "january": 1, "januari": 1, "jan": 1,
    "february": 2, "februari": 2, "feb": 2,
    "march": 3, "maret": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5, "mei": 5,
    "june": 6, "juni": 6, "jun": 6,
    "july": 7, "juli": 7, "jul": 7,
    "august": 8, "agustus": 8, "aug": 8, "agu": 8, "agt": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oktober": 10, "oct": 10, "okt": 10,
    "november": 11, "nopember": 11, "nov": 11,
    "december": 12, "desember": 12, "dec": 12, "des": 12,
}

# Longest spellings first so "Maret" is not cut short at "Mar".
_MONTHS = "(?:{})\\b".format(
    "|".join(sorted(MONTH_NAMES, key=len, reverse=True))
)

DATE_CONTEXT_WINDOW = 50
AMOUNT_CONTEXT_WINDOW = 30

DATE_CONTEXT_TAGS: dict[str, tuple[str, ...]] = {
    "start_date": ("start", "begin", "mulai"),
    "end_date": ("end", "completion", "finish", "selesai", "akhir"),
    "milestone": ("milestone", "tahap"),
    "deadline": ("deadline", "due", "batas waktu", "tenggat"),
}

AMOUNT_CONTEXT_TAGS: dict[str, tuple[str, ...]] = {
    "total_cost": ("total", "jumlah"),
    "material_cost": ("material", "bahan"),
    "labor_cost": ("labor", "labour", "upah", "tenaga kerja"),
    "equipment_cost": ("equipment", "peralatan", "alat"),
}

_TRAILING_PUNCT = ".,;:/-"


def _clean(raw: str) -> str:
    return raw.strip().rstrip(_TRAILING_PUNCT).strip()


def context_tag(
    text: str, start: int, window: int, tags: dict[str, tuple[str, ...]]
) -> str:
    """Tag a value by the keyword closest before it.

    Only the ``window`` characters preceding ``start`` are searched, and
    keywords must begin a word. Returns ``"other"`` when none is found.
    """
    before = text[max(0, start - window) : start].lower()
    best_tag, best_pos = "other", -1
    for tag, keywords in tags.items():
        for keyword in keywords:
            for hit in re.finditer(rf"\b{re.escape(keyword)}", before):
                if hit.start() > best_pos:
                    best_tag, best_pos = tag, hit.start()
    return best_tag


# Amounts


def detect_currency(raw: str, default: str = "IDR") -> str:
    """Infer the currency code from symbols or codes inside ``raw``."""
    lowered = raw.lower()
    if "rp" in lowered or "idr" in lowered or "rupiah" in lowered:
        return "IDR"
    if "$" in raw or "usd" in lowered:
        return "USD"
    if "€" in raw or "eur" in lowered:
        return "EUR"
    return default


def parse_amount(raw: str) -> float | None:
    """Parse a number written with either ``.`` or ``,`` grouping.

    When both separators appear the last one is the decimal mark. A lone
    separator followed by exactly three digits is a thousands separator.
    """
    digits = re.sub(r"[^\d.,]", "", raw).strip(".,")
    if not digits:
        return None

    last_dot, last_comma = digits.rfind("."), digits.rfind(",")
    if last_dot >= 0 and last_comma >= 0:
        decimal = "." if last_dot > last_comma else ","
    else:
        sep = "." if last_dot >= 0 else ","
        if sep not in digits:
            return float(digits)
        tail = digits.rpartition(sep)[2]
        decimal = None if digits.count(sep) > 1 or len(tail) == 3 else sep

    thousands = {".", ","} - {decimal}
    normalized = "".join(ch for ch in digits if ch not in thousands)
    if decimal:
        normalized = normalized.replace(decimal, ".")
    try:
        return float(normalized)
    except ValueError:
        return None


def _build_amount(
    match: re.Match[str], kind: str, confidence: float, ctx: ExtractionContext
) -> AmountField:
    value = _clean(match.group(0))
    return AmountField(
        value=value,
        confidence=confidence,
        field_type=context_tag(
            ctx.text, match.start(), AMOUNT_CONTEXT_WINDOW, AMOUNT_CONTEXT_TAGS
        ),
        currency=detect_currency(value, ctx.config.default_currency),
        amount=parse_amount(value),
    )


# Coordinates


def _dms_to_decimal(degrees: str, minutes: str, seconds: str, hemisphere: str) -> float:
    value = abs(float(degrees)) + float(minutes) / 60 + float(seconds) / 3600
    if hemisphere.upper() in ("S", "W") or degrees.startswith("-"):
        value = -value
    return round(value, 6)


def _build_coordinate(
    match: re.Match[str], field_type: str, confidence: float, ctx: ExtractionContext
) -> CoordinateField:
    result = CoordinateField(
        value=_clean(match.group(0)) if field_type == "decimal" else match.group(0).strip(),
        confidence=confidence,
        field_type=field_type,
    )
    if field_type == "dms":
        deg, minutes, seconds, hemisphere = match.groups()
        decimal = _dms_to_decimal(deg, minutes, seconds, hemisphere)
        if hemisphere.upper() in ("N", "S"):
            result.latitude = decimal
        else:
            result.longitude = decimal
    else:
        lat, lon = float(match.group(1)), float(match.group(2))
        if -90 <= lat <= 90 and -180 <= lon <= 180:
            result.latitude, result.longitude = lat, lon
    return result


# Dates and specifications


def _full_year(year: int) -> int:
    return 2000 + year if year < 100 else year


def parse_date(value: str, date_format: str) -> date | None:
    """Turn a matched date into a calendar date, or ``None`` if impossible.

    Numeric dates are read day first, falling back to month first when
    the leading number cannot be a month. Two-digit years are 20xx.
    """
    numbers = [int(n) for n in re.findall(r"\d+", value)]
    try:
        if date_format == "iso":
            year, month, day = numbers
        elif date_format == "month_name":
            name = re.search(r"[A-Za-z]+", value)
            month = MONTH_NAMES.get(name.group(0).lower(), 0) if name else 0
            day, year = numbers
        else:
            day, month, year = numbers
            if month > 12 >= day:
                day, month = month, day
        return date(_full_year(year), month, day)
    except ValueError:
        return None


def _build_date(
    match: re.Match[str], kind: str, confidence: float, ctx: ExtractionContext
) -> DateField:
    value = _clean(match.group(0))
    parsed = parse_date(value, kind)
    return DateField(
        value=value,
        confidence=confidence,
        field_type=context_tag(
            ctx.text, match.start(), DATE_CONTEXT_WINDOW, DATE_CONTEXT_TAGS
        ),
        date_format=kind,
        iso_date=parsed.isoformat() if parsed else None,
    )


def _build_specification(
    match: re.Match[str], field_type: str, confidence: float, ctx: ExtractionContext
) -> SpecificationField:
    unit = match.groupdict().get("unit")
    return SpecificationField(
        value=_clean(match.group(0)),
        confidence=confidence,
        field_type=field_type,
        unit=unit.lower() if unit else None,
    )


PATTERN_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        category="dates",
        confidence=0.8,
        patterns=(
            PatternRule(re.compile(r"\b\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b"), "numeric"),
            PatternRule(
                re.compile(rf"\b\d{{1,2}}[/\-]{_MONTHS}[/\-]\d{{2,4}}\b", re.IGNORECASE),
                "month_name",
            ),
            PatternRule(
                re.compile(rf"\b\d{{1,2}}\s+{_MONTHS}\.?\s+\d{{4}}\b", re.IGNORECASE),
                "month_name",
            ),
            PatternRule(
                re.compile(rf"\b{_MONTHS}\.?\s+\d{{1,2}},?\s+\d{{2,4}}\b", re.IGNORECASE),
                "month_name",
            ),
            PatternRule(re.compile(r"\b\d{4}[/\-]\d{1,2}[/\-]\d{1,2}\b"), "iso"),
        ),
        build=_build_date,
    ),
    CategoryRule(
        category="amounts",
        confidence=0.85,
        patterns=(
            PatternRule(re.compile(r"\bRp\.?\s*\d[\d.,]*", re.IGNORECASE), "other"),
            PatternRule(re.compile(r"(?:\bUS)?\$\s*\d[\d.,]*"), "other"),
            PatternRule(re.compile(r"€\s*\d[\d.,]*"), "other"),
            PatternRule(
                re.compile(r"\b(?:IDR|USD|EUR)\s*\d[\d.,]*", re.IGNORECASE), "other"
            ),
            PatternRule(
                re.compile(r"\b\d[\d.,]*\s*(?:IDR|USD|EUR|rupiah)\b", re.IGNORECASE),
                "other",
            ),
        ),
        build=_build_amount,
    ),
    CategoryRule(
        category="coordinates",
        confidence=0.9,
        patterns=(
            PatternRule(
                re.compile(
                    r"(?<![\d.])([-+]?\d{1,3}(?:\.\d+)?)[°º\s]+(\d{1,2}(?:\.\d+)?)['′\s]+"
                    r"(\d{1,2}(?:\.\d+)?)[\"″\s]*([NSEW])\b"
                ),
                "dms",
            ),
            PatternRule(
                re.compile(
                    r"(?<![\d.])([-+]?\d{1,3}\.\d+)\s*[,/]\s*([-+]?\d{1,3}\.\d+)(?![\d.])"
                ),
                "decimal",
            ),
        ),
        build=_build_coordinate,
    ),
    CategoryRule(
        category="specifications",
        confidence=0.8,
        patterns=(
            PatternRule(
                re.compile(
                    r"\b\d+(?:[.,]\d+)?\s*(?P<unit>mm|cm|km|m[23²³]?|kg|ton|liter|ltr"
                    r"|buah|unit|pcs|set|sak|zak|lembar|batang)\b",
                    re.IGNORECASE,
                ),
                "measurement",
            ),
            PatternRule(
                re.compile(
                    r"\b(?:grade|kelas|class|mutu)\s*[-:]?\s*"
                    r"(?:[A-Z]{1,2}-?\d+[A-Z0-9]*|\d+[A-Z0-9]*|[A-Z]\b)",
                    re.IGNORECASE,
                ),
                "grade",
            ),
            PatternRule(
                re.compile(r"\b(?:SNI|ISO|ASTM|ACI|JIS)\s*[-:]?\s*[A-Z]?\d[\w\-.:/]*"),
                "standard",
            ),
        ),
        build=_build_specification,
    ),
)


# Keyword categories


def _build_material(
    keyword: str, label: str, confidence: float, ctx: ExtractionContext
) -> MaterialField:
    return MaterialField(value=keyword, confidence=confidence, name=label)


def _build_personnel(
    keyword: str, label: str, confidence: float, ctx: ExtractionContext
) -> PersonnelField:
    return PersonnelField(value=keyword, confidence=confidence, role=label)


def _find_indicator_box(keyword: str, boxes: list[WordBox]) -> WordBox | None:
    first_token = keyword.split()[0]
    return next((b for b in boxes if first_token in b.text.lower()), None)


def _build_signature(
    keyword: str, label: str, confidence: float, ctx: ExtractionContext
) -> SignatureField:
    return SignatureField(
        value=keyword,
        confidence=confidence,
        bounding_box=_find_indicator_box(keyword, ctx.boxes),
    )


KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(
        category="materials",
        confidence=0.7,
        keywords={
            "semen": "cement",
            "beton": "concrete",
            "baja": "steel",
            "kayu": "wood",
            "batu bata": "brick",
            "genteng": "roof tile",
            "atap": "roof",
            "pintu": "door",
            "jendela": "window",
            "keramik": "ceramic",
            "cat": "paint",
            "besi": "iron",
            "kabel": "cable",
            "pipa": "pipe",
            "granit": "granite",
            "marmer": "marble",
            "aluminium": "aluminium",
            "kaca": "glass",
            "pasir": "sand",
            "cement": "cement",
            "concrete": "concrete",
            "steel": "steel",
            "wood": "wood",
            "brick": "brick",
            "roof": "roof",
            "door": "door",
            "window": "window",
            "tile": "tile",
            "paint": "paint",
            "rebar": "rebar",
        },
        build=_build_material,
    ),
    KeywordRule(
        category="personnel",
        confidence=0.65,
        keywords={
            "mandor": "foreman",
            "foreman": "foreman",
            "supervisor": "supervisor",
            "engineer": "engineer",
            "arsitek": "architect",
            "architect": "architect",
            "insinyur": "engineer",
            "pekerja": "worker",
            "worker": "worker",
            "manager": "manager",
            "manajer": "manager",
            "direktur": "director",
            "director": "director",
            "koordinator": "coordinator",
            "coordinator": "coordinator",
            "pengawas": "inspector",
            "inspector": "inspector",
            "kontraktor": "contractor",
            "contractor": "contractor",
        },
        build=_build_personnel,
    ),
    KeywordRule(
        category="signatures",
        confidence=0.75,
        keywords={
            "ttd": "signature",
            "signature": "signature",
            "tandatangan": "signature",
            "tanda tangan": "signature",
            "signed by": "signature",
        },
        build=_build_signature,
    ),
)


def _overlaps(span: tuple[int, int], taken: list[tuple[int, int]]) -> bool:
    start, end = span
    return any(start < t_end and t_start < end for t_start, t_end in taken)


def apply_pattern_rule(rule: CategoryRule, ctx: ExtractionContext) -> list[ExtractedField]:
    """Evaluate a regex category against the document text.

    Patterns are tried in declaration order; a match overlapping text
    already claimed by an earlier match of the same category is skipped,
    so one written value yields one field.
    """
    results: list[tuple[int, ExtractedField]] = []
    taken: list[tuple[int, int]] = []
    for pattern_rule in rule.patterns:
        for match in pattern_rule.pattern.finditer(ctx.text):
            if _overlaps(match.span(), taken):
                continue
            taken.append(match.span())
            built = rule.build(match, pattern_rule.kind, rule.confidence, ctx)
            results.append((match.start(), built))
    results.sort(key=lambda item: item[0])
    return [f for _, f in results]


def apply_keyword_rule(rule: KeywordRule, ctx: ExtractionContext) -> list[ExtractedField]:
    """Evaluate a keyword category with a case-insensitive membership test.

    Each keyword present in the text yields one field, however often it
    repeats. Synonyms ("semen" and "cement") are separate keywords and
    each report a field unless ``merge_synonyms`` is set, in which case
    only the first keyword per canonical label is kept.
    """
    lowered = ctx.text.lower()
    results: list[ExtractedField] = []
    seen_labels: set[str] = set()
    for keyword, label in rule.keywords.items():
        if keyword not in lowered:
            continue
        if ctx.config.merge_synonyms:
            if label in seen_labels:
                continue
            seen_labels.add(label)
        results.append(rule.build(keyword, label, rule.confidence, ctx))
    return results


_PROJECT_NAME = re.compile(
    r"\b(?:PROJECT|PROYEK)(?:[ \t]+(?:NAME|NAMA))?[ \t]*:[ \t]*(\S.*?)[ \t]*$",
    re.IGNORECASE | re.MULTILINE,
)
_CONTRACT_NUMBER = re.compile(
    r"\b(?:(?:NO\.?|NOMOR|NUMBER)[ \t]*)?(?:CONTRACT|KONTRAK)"
    r"(?:[ \t]*(?:NO\.?|NUMBER|NOMOR))?[ \t]*:[ \t]*([A-Z0-9][A-Z0-9\-/.]*)",
    re.IGNORECASE,
)


def extract_project_name(text: str) -> str | None:
    """Return the value of the first ``Project:`` / ``Proyek:`` header line."""
    match = _PROJECT_NAME.search(text)
    return match.group(1) if match else None


def extract_contract_number(text: str) -> str | None:
    """Return the identifier after the first ``Contract No:`` / ``Nomor Kontrak:`` label."""
    match = _CONTRACT_NUMBER.search(text)
    return match.group(1).rstrip(".") if match else None


_COLUMN_SPLIT = re.compile(r"\t+|\s{2,}")


def split_columns(line: str) -> list[str]:
    """Split a line on tabs or runs of two or more spaces."""
    return [cell for cell in _COLUMN_SPLIT.split(line.strip()) if cell]


def detect_tables(ctx: ExtractionContext) -> list[TableField]:
    """Group runs of column-aligned lines into table blocks.

    A run of at least ``table_min_rows`` consecutive lines, each holding at
    least ``table_min_columns`` tab- or multi-space-separated segments,
    becomes one table. A run still open at the end of the text is kept if
    it is long enough.
    """
    min_rows = ctx.config.table_min_rows
    min_columns = ctx.config.table_min_columns
    tables: list[TableField] = []
    current: list[str] = []

    def flush() -> None:
        if len(current) >= min_rows:
            tables.append(
                TableField(
                    value="\n".join(current),
                    confidence=0.7,
                    rows=[split_columns(line) for line in current],
                )
            )
        current.clear()

    for line in ctx.text.splitlines():
        if len(split_columns(line)) >= min_columns:
            current.append(line)
        else:
            flush()
    flush()
    return tables
