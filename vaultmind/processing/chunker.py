"""Text chunking logic for vault notes."""

from collections.abc import Sequence

DEFAULT_SEPARATORS = ("\n\n", "\n", " ")


class RecursiveChunker:
    """Splits text recursively on a hierarchy of separators.

    Paragraph breaks are tried first, then line breaks, then spaces, so a
    chunk only breaks mid-paragraph when the paragraph itself is too long.
    Adjacent chunks share up to ``chunk_overlap`` characters of context.
    """

    def __init__(
        self,
        chunk_size: int = 1024,
        chunk_overlap: int = 50,
        separators: Sequence[str] = DEFAULT_SEPARATORS,
    ):
        """Initialize the chunker.

        Args:
            chunk_size: Maximum chunk size in characters
            chunk_overlap: Maximum characters shared by consecutive chunks
            separators: Split points in order of preference

        Raises:
            ValueError: If chunk_overlap >= chunk_size or if values are negative
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must be non-negative")
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")
        if not separators:
            raise ValueError("at least one separator is required")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators)

    def split_text(self, text: str) -> list[str]:
        """Split text into trimmed, non-empty chunks.

        Args:
            text: Text to split

        Returns:
            Chunks no longer than chunk_size, in document order
        """
        if not text or not text.strip():
            return []
        return self._split(text, self.separators)

    def _split(self, text: str, separators: list[str]) -> list[str]:
        # Use the first separator that occurs in the text
        separator = separators[-1]
        remaining: list[str] = []
        for i, candidate in enumerate(separators):
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1 :]
                break

        chunks: list[str] = []
        pending: list[str] = []

        for piece in text.split(separator):
            if len(piece) <= self.chunk_size:
                pending.append(piece)
                continue

            if pending:
                chunks.extend(self._merge(pending, separator))
                pending = []

            if remaining:
                chunks.extend(self._split(piece, remaining))
            else:
                chunks.extend(self._split_hard(piece))

        if pending:
            chunks.extend(self._merge(pending, separator))

        return chunks

    def _merge(self, pieces: list[str], separator: str) -> list[str]:
        """Greedily join small pieces into chunks, carrying overlap forward."""
        chunks: list[str] = []
        window: list[str] = []
        total = 0
        sep_len = len(separator)

        for piece in pieces:
            length = len(piece)
            joined_len = total + length + (sep_len if window else 0)

            if joined_len > self.chunk_size and window:
                chunk = separator.join(window).strip()
                if chunk:
                    chunks.append(chunk)

                # Drop pieces from the front until the rest fits as overlap
                while window and (
                    total > self.chunk_overlap
                    or total + length + sep_len > self.chunk_size
                ):
                    total -= len(window[0]) + (sep_len if len(window) > 1 else 0)
                    window.pop(0)

            window.append(piece)
            total += length + (sep_len if len(window) > 1 else 0)

        chunk = separator.join(window).strip()
        if chunk:
            chunks.append(chunk)

        return chunks

    def _split_hard(self, text: str) -> list[str]:
        """Cut text without separators into fixed windows with overlap."""
        step = self.chunk_size - self.chunk_overlap
        chunks = []
        for start in range(0, len(text), step):
            chunk = text[start : start + self.chunk_size].strip()
            if chunk:
                chunks.append(chunk)
            if start + self.chunk_size >= len(text):
                break
        return chunks
