"""Chunking engine: overlapping fixed-size word windows."""
import logging
import re
from typing import List, Optional

from models.chunk import ChunkWindow
from services.errors import ConfigurationError
from config import CHUNK_SIZE, CHUNK_OVERLAP

logger = logging.getLogger(__name__)

# Page tags injected by the document parser, e.g. "[Page 12]"
PAGE_MARKER_PATTERN = re.compile(r"\[Page (\d+)\]")


def split_words(text: str) -> List[str]:
    """Split text on runs of whitespace, dropping empty tokens."""
    return text.split()


def extract_page_number(text: str) -> Optional[int]:
    """Return the number of the first page marker in text, or None."""
    match = PAGE_MARKER_PATTERN.search(text)
    return int(match.group(1)) if match else None


class ChunkingEngine:
    """Segments document text into overlapping windows of words."""

    def __init__(self, chunk_size: int = CHUNK_SIZE, chunk_overlap: int = CHUNK_OVERLAP):
        """
        Initialize ChunkingEngine.

        Args:
            chunk_size: Window size in words
            chunk_overlap: Number of words shared by consecutive windows

        Raises:
            ConfigurationError: If chunk_size < 1, chunk_overlap < 0 or
                chunk_overlap >= chunk_size
        """
        self._validate(chunk_size, chunk_overlap)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @staticmethod
    def _validate(chunk_size: int, chunk_overlap: int) -> None:
        if chunk_size < 1:
            raise ConfigurationError(
                f"chunk_size must be positive, got {chunk_size}",
                {"chunk_size": chunk_size},
            )
        if chunk_overlap < 0:
            raise ConfigurationError(
                f"chunk_overlap must be non-negative, got {chunk_overlap}",
                {"chunk_overlap": chunk_overlap},
            )
        if chunk_overlap >= chunk_size:
            raise ConfigurationError(
                f"chunk_overlap ({chunk_overlap}) must be smaller than chunk_size ({chunk_size})",
                {"chunk_size": chunk_size, "chunk_overlap": chunk_overlap},
            )

    def split(
        self,
        text: str,
        chunk_size: Optional[int] = None,
        overlap: Optional[int] = None
    ) -> List[ChunkWindow]:
        """
        Split text into windows of `chunk_size` words advancing by
        `chunk_size - overlap` words.

        The last window may be shorter than `chunk_size`; it is always
        emitted. Windows are joined with single spaces, so original runs
        of whitespace are normalized.

        Args:
            text: Document text
            chunk_size: Override for the configured window size
            overlap: Override for the configured overlap

        Returns:
            Ordered list of windows; empty for blank text
        """
        size = self.chunk_size if chunk_size is None else chunk_size
        step_overlap = self.chunk_overlap if overlap is None else overlap
        self._validate(size, step_overlap)

        words = split_words(text or "")
        if not words:
            return []

        step = size - step_overlap
        windows: List[ChunkWindow] = []
        start = 0
        while True:
            end = min(start + size, len(words))
            window_text = " ".join(words[start:end])
            windows.append(ChunkWindow(
                text=window_text,
                start_offset=start,
                end_offset=end,
                page_number=extract_page_number(window_text),
            ))
            if end == len(words):
                break
            start += step

        logger.debug(f"Split {len(words)} words into {len(windows)} chunks (size={size}, overlap={step_overlap})")
        return windows
