"""Text parsing utilities for consistent text processing across the application."""

import re
import unicodedata
from typing import Any


class TextParser:
    """
    Centralized text normalization.

    Every term, pronunciation and category label goes through here before it
    is stored, so local and remote copies compare equal.
    """

    # Whitespace normalization pattern
    WHITESPACE_PATTERN = re.compile(r'\s+')

    @classmethod
    def normalize_unicode(cls, text: str) -> str:
        """
        Normalize text to NFC form for consistent Unicode handling.

        Prevents issues with characters like é being represented as
        either a single codepoint (NFC) or base + combining accent (NFD).

        Args:
            text: Input text

        Returns:
            NFC-normalized text
        """
        if not text:
            return ""
        return unicodedata.normalize('NFC', str(text))

    @classmethod
    def clean_term(cls, value: Any) -> str:
        """
        Trim and normalize a single term or label.

        None becomes an empty string; inner runs of whitespace collapse to
        one space.

        Args:
            value: Raw value from the caller or a store row

        Returns:
            Cleaned text
        """
        if value is None:
            return ""
        text = cls.normalize_unicode(str(value))
        return cls.WHITESPACE_PATTERN.sub(' ', text).strip()
