"""Parallel structured field extraction over recognized text.

The eight category extractors are independent pure functions, so they
run concurrently and are joined at the end. A failure in one category
is logged and yields an empty collection for it; the others still run.
Implausible dates and amounts are dropped afterwards unless
``validate_fields`` is off.
"""

import asyncio
from collections.abc import Callable

from sitescan.exceptions import ExtractionError
from sitescan.ocr.executor import WordBox
from sitescan.utils.config import ExtractionConfig
from sitescan.utils.logger import get_logger

from .fields import CATEGORIES, ExtractedData, ExtractedField
from .plausibility import drop_implausible
from .rules import (
    KEYWORD_RULES,
    PATTERN_RULES,
    ExtractionContext,
    apply_keyword_rule,
    apply_pattern_rule,
    detect_tables,
    extract_contract_number,
    extract_project_name,
)

logger = get_logger(__name__)

CategoryExtractor = Callable[[ExtractionContext], list[ExtractedField]]


def _default_extractors() -> dict[str, CategoryExtractor]:
    extractors: dict[str, CategoryExtractor] = {}
    for rule in PATTERN_RULES:
        extractors[rule.category] = lambda ctx, rule=rule: apply_pattern_rule(rule, ctx)
    for keyword_rule in KEYWORD_RULES:
        extractors[keyword_rule.category] = (
            lambda ctx, rule=keyword_rule: apply_keyword_rule(rule, ctx)
        )
    extractors["tables"] = detect_tables
    return {name: extractors[name] for name in CATEGORIES}


class StructuredExtractor:
    """Fans out the category extractors over one document's text.

    Args:
        config: Extraction configuration.
        extractors: Optional replacement mapping of category name to
            extractor function; defaults to the built-in rule table.
    """

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        extractors: dict[str, CategoryExtractor] | None = None,
    ) -> None:
        self.config = config or ExtractionConfig()
        self.extractors = extractors or _default_extractors()

    def run_category(self, category: str, ctx: ExtractionContext) -> list[ExtractedField]:
        """Run a single category, isolating any failure."""
        try:
            return self.extractors[category](ctx)
        except Exception as exc:
            error = ExtractionError(category, str(exc))
            logger.warning("Extraction skipped: %s", error, exc_info=True)
            return []

    async def extract(self, text: str, boxes: list[WordBox] | None = None) -> ExtractedData:
        """Extract all categories concurrently.

        Args:
            text: Recognized document text.
            boxes: Word boxes from recognition, used to locate signatures.

        Returns:
            The eight field collections; all empty for blank text.
        """
        if not text.strip():
            logger.debug("Blank text, skipping structured extraction")
            return ExtractedData()

        ctx = ExtractionContext(text=text, boxes=list(boxes or []), config=self.config)
        names = [name for name in CATEGORIES if name in self.extractors]
        collections = await asyncio.gather(
            *(asyncio.to_thread(self.run_category, name, ctx) for name in names)
        )

        data = ExtractedData(
            **dict(zip(names, collections)),
            project_name=extract_project_name(text),
            contract_number=extract_contract_number(text),
        )
        if self.config.validate_fields:
            data = drop_implausible(data, self.config)
        logger.info(
            "Structured extraction found %d fields (%s)",
            data.total,
            ", ".join(f"{name}={len(getattr(data, name))}" for name in names),
        )
        return data
