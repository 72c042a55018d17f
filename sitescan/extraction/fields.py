"""Typed records for structured fields found in construction documents.

Each category has its own dataclass carrying a class-level ``category``
tag plus the shared ``value``/``confidence``/``field_type`` triple.
"""

from dataclasses import asdict, dataclass, field
from typing import ClassVar

from sitescan.ocr.executor import WordBox

CATEGORIES = (
    "dates",
    "amounts",
    "materials",
    "personnel",
    "coordinates",
    "specifications",
    "signatures",
    "tables",
)


@dataclass
class ExtractedField:
    """Base record: the matched text, its confidence, and a type tag."""

    category: ClassVar[str] = "field"

    value: str
    confidence: float
    field_type: str = "other"

    def to_dict(self) -> dict[str, object]:
        data = asdict(self)
        data["category"] = self.category
        return data


@dataclass
class DateField(ExtractedField):
    """A written date.

    ``field_type`` is the role read from the words just before the date
    (``start_date``, ``end_date``, ``milestone``, ``deadline`` or
    ``other``); ``date_format`` records how it was written.
    """

    category: ClassVar[str] = "dates"

    date_format: str = "numeric"
    iso_date: str | None = None


@dataclass
class AmountField(ExtractedField):
    category: ClassVar[str] = "amounts"

    currency: str = "IDR"
    amount: float | None = None


@dataclass
class MaterialField(ExtractedField):
    category: ClassVar[str] = "materials"

    field_type: str = "material"
    name: str = ""


@dataclass
class PersonnelField(ExtractedField):
    category: ClassVar[str] = "personnel"

    field_type: str = "role"
    role: str = ""


@dataclass
class CoordinateField(ExtractedField):
    category: ClassVar[str] = "coordinates"

    latitude: float | None = None
    longitude: float | None = None


@dataclass
class SpecificationField(ExtractedField):
    category: ClassVar[str] = "specifications"

    unit: str | None = None


@dataclass
class SignatureField(ExtractedField):
    category: ClassVar[str] = "signatures"

    field_type: str = "indicator"
    bounding_box: WordBox | None = None


@dataclass
class TableField(ExtractedField):
    category: ClassVar[str] = "tables"

    field_type: str = "text_table"
    rows: list[list[str]] = field(default_factory=list)


@dataclass
class ExtractedData:
    """The eight field collections produced for one document, plus the
    project name and contract number when the header states them."""

    dates: list[DateField] = field(default_factory=list)
    amounts: list[AmountField] = field(default_factory=list)
    materials: list[MaterialField] = field(default_factory=list)
    personnel: list[PersonnelField] = field(default_factory=list)
    coordinates: list[CoordinateField] = field(default_factory=list)
    specifications: list[SpecificationField] = field(default_factory=list)
    signatures: list[SignatureField] = field(default_factory=list)
    tables: list[TableField] = field(default_factory=list)
    project_name: str | None = None
    contract_number: str | None = None

    @property
    def total(self) -> int:
        return sum(len(getattr(self, name)) for name in CATEGORIES)

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            name: [f.to_dict() for f in getattr(self, name)] for name in CATEGORIES
        }
        data["projectName"] = self.project_name
        data["contractNumber"] = self.contract_number
        return data
