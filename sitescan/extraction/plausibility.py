"""Final checks on extracted fields and recognition confidence.

Dates must parse and fall strictly between the configured years, and
amounts must be positive and below the configured ceiling. Anything
else is most likely a misread and is dropped from the result.
"""

from dataclasses import replace

from sitescan.ocr.executor import WordBox
from sitescan.utils.config import ExtractionConfig
from sitescan.utils.logger import get_logger

from .fields import AmountField, DateField, ExtractedData

logger = get_logger(__name__)


def is_plausible_date(item: DateField, config: ExtractionConfig) -> bool:
    if item.iso_date is None:
        return False
    year = int(item.iso_date[:4])
    return config.min_date_year < year < config.max_date_year


def is_plausible_amount(item: AmountField, config: ExtractionConfig) -> bool:
    return item.amount is not None and 0 < item.amount < config.max_amount


def drop_implausible(data: ExtractedData, config: ExtractionConfig) -> ExtractedData:
    """Return a copy of ``data`` without implausible dates and amounts."""
    dates = [d for d in data.dates if is_plausible_date(d, config)]
    amounts = [a for a in data.amounts if is_plausible_amount(a, config)]
    dropped = len(data.dates) - len(dates) + len(data.amounts) - len(amounts)
    if dropped:
        logger.debug("Dropped %d implausible date/amount fields", dropped)
    return replace(data, dates=dates, amounts=amounts)


def blend_confidence(confidence: float, boxes: list[WordBox]) -> float:
    """Average the overall confidence together with every word box's."""
    scores = [confidence, *(box.confidence for box in boxes)]
    return sum(scores) / len(scores)
