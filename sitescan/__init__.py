"""Construction site document OCR pipeline.

Turns scanned site documents (images or scanned PDF pages) into recognized
text plus structured fields such as dates, amounts, materials, personnel,
coordinates, specifications, signature markers, and tables.
"""

__version__ = "1.0.0"
