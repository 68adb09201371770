"""Tokenizer for the lexical index.

Splits on whitespace, isolates CJK ideographs, folds diacritics and adds
camelCase and hyphen sub-tokens so ``myVariable`` and ``well-known`` are
also found by their parts.
"""

import re
import unicodedata

from vaultmind.retrieval.segmenter import CJKSegmenter, NoOpSegmenter

CJK_PATTERN = re.compile(r"[\u4e00-\u9fa5]")
COMBINING_MARKS_PATTERN = re.compile(r"[\u0300-\u036f]")
CAMEL_CASE_BOUNDARY = re.compile(r"(?=[A-Z])")


def is_cjk(char: str) -> bool:
    return CJK_PATTERN.fullmatch(char) is not None


def has_cjk(text: str) -> bool:
    return CJK_PATTERN.search(text) is not None


def fold(text: str) -> str:
    """Lower-case and strip diacritics (``Café`` -> ``cafe``)."""
    return COMBINING_MARKS_PATTERN.sub("", unicodedata.normalize("NFD", text.lower()))


def split_camel_case(word: str) -> list[str]:
    """Split ``myVariable`` into ``my``, ``Variable``; short words stay whole."""
    if len(word) < 3:
        return [word]
    parts = [part for part in CAMEL_CASE_BOUNDARY.split(word) if part]
    return parts if len(parts) > 1 else [word]


def split_hyphens(word: str) -> list[str]:
    return word.split("-") if "-" in word else [word]


class Tokenizer:
    """Tokenizer shared by indexing and querying.

    The same instance must be used for both, otherwise query terms and
    indexed terms will not line up.
    """

    def __init__(self, segmenter: CJKSegmenter | None = None):
        """Initialize tokenizer.

        Args:
            segmenter: CJK word segmenter (defaults to a no-op)
        """
        self.segmenter = segmenter or NoOpSegmenter()

    def base_tokens(self, text: str) -> list[str]:
        """Whitespace-separated runs, with every CJK ideograph as its own token."""
        tokens: list[str] = []
        current: list[str] = []

        for char in text:
            if is_cjk(char):
                if current:
                    tokens.append("".join(current))
                    current = []
                tokens.append(char)
            elif char.isspace():
                if current:
                    tokens.append("".join(current))
                    current = []
            else:
                current.append(char)

        if current:
            tokens.append("".join(current))

        return tokens

    def tokenize(self, text: str) -> list[str]:
        """Tokenize text into unique, folded terms.

        Args:
            text: Text to tokenize

        Returns:
            De-duplicated list of terms
        """
        tokens: list[str] = []
        for token in self.base_tokens(text):
            if has_cjk(token):
                tokens.extend(self.segmenter.segment(token))
            else:
                tokens.append(token)

        expanded: list[str] = []
        for token in tokens:
            expanded.append(fold(token))

            if has_cjk(token):
                continue

            camel_parts = split_camel_case(token)
            if len(camel_parts) > 1:
                expanded.extend(fold(part) for part in camel_parts)

            hyphen_parts = split_hyphens(token)
            if len(hyphen_parts) > 1:
                expanded.extend(fold(part) for part in hyphen_parts)

        return list(dict.fromkeys(term for term in expanded if term))
