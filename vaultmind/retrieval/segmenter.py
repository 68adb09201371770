"""Pluggable word segmentation for CJK text."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CJKSegmenter(Protocol):
    """Protocol for splitting CJK text into words."""

    def segment(self, text: str) -> list[str]:
        """Split text into sub-words, favouring coverage (search mode).

        Args:
            text: Token containing CJK characters.

        Returns:
            Sub-word tokens.
        """
        ...


class NoOpSegmenter:
    """Default segmenter: leaves every token as it is."""

    def segment(self, text: str) -> list[str]:
        return [text]
