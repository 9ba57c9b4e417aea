"""
Text normalization for values written into line-oriented documents.
"""

import re
from typing import Optional

_LINE_BREAKS = re.compile(r"\s*[\r\n]+\s*")


def single_line(value: Optional[str]) -> str:
    """Collapse line breaks (and the whitespace around them) to one space."""
    if not value:
        return ""
    return _LINE_BREAKS.sub(" ", value).strip()


def clean_text(value: Optional[str]) -> str:
    """
    Normalize user text so it fits on one document line.

    Line breaks collapse to a single space and comment delimiters are broken
    up so they cannot end the metadata comment early.
    """
    text = single_line(value)
    return text.replace("<!--", "<!- -").replace("-->", "- ->")
