"""Text chunking with fixed-size overlapping windows.

Splits an owner's free text (menus, FAQs, price lists) into windows sized
for the embedding model.  The window size and overlap are measured in one
fixed unit, either characters or whitespace-delimited words, chosen per
deployment rather than inferred per call.

Each window after the first starts ``overlap`` units before the previous
one ended, so a fact that straddles a boundary appears whole in at least one
chunk.  Windows are emitted untrimmed: dropping the first ``overlap`` units
of every chunk after the first and concatenating the rest gives back the
input text.
"""

from __future__ import annotations

import re
from enum import Enum

import structlog

from autoreply.utils.errors import InvalidConfigurationError

logger = structlog.get_logger(logger_name=__name__)

# A word unit is a run of non-whitespace plus the whitespace after it, so
# joining units reproduces the text byte for byte.
_WORD_UNIT = re.compile(r"\S+\s*")


class ChunkUnit(str, Enum):
    """What ``max_unit_size`` and ``overlap`` count."""

    CHARACTERS = "characters"
    WORDS = "words"


class TextChunker:
    """Splits text into overlapping windows of at most ``max_unit_size`` units.

    Parameters
    ----------
    max_unit_size:
        Maximum units per chunk (default 1200 characters).
    overlap:
        Units shared by consecutive chunks; must satisfy
        ``0 <= overlap < max_unit_size``.
    unit:
        :class:`ChunkUnit` or its string value.

    Raises
    ------
    InvalidConfigurationError
        If the size or overlap would not let the cursor advance.
    """

    def __init__(
        self,
        max_unit_size: int = 1200,
        overlap: int = 100,
        unit: ChunkUnit | str = ChunkUnit.CHARACTERS,
    ) -> None:
        try:
            self._unit = ChunkUnit(unit)
        except ValueError as exc:
            raise InvalidConfigurationError(
                message=f"Unknown chunk unit {unit!r}; expected 'characters' or 'words'"
            ) from exc
        if max_unit_size <= 0:
            raise InvalidConfigurationError(
                message=f"max_unit_size must be positive, got {max_unit_size}"
            )
        if overlap < 0 or overlap >= max_unit_size:
            raise InvalidConfigurationError(
                message=(
                    f"overlap must satisfy 0 <= overlap < max_unit_size "
                    f"(got overlap={overlap}, max_unit_size={max_unit_size})"
                )
            )
        self._size = max_unit_size
        self._overlap = overlap
        self._advance = max_unit_size - overlap

    @property
    def max_unit_size(self) -> int:
        return self._size

    @property
    def overlap(self) -> int:
        return self._overlap

    @property
    def unit(self) -> ChunkUnit:
        return self._unit

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(self, text: str) -> list[str]:
        """Split *text* into ordered, non-blank chunks.

        Empty or whitespace-only input returns an empty list.  A window that
        would be all whitespace is stretched to the next non-blank unit, and
        trailing whitespace joins the last chunk, so such chunks can run past
        ``max_unit_size`` by whitespace only.
        """
        if not text or not text.strip():
            return []

        units = self._to_units(text)
        chunks: list[str] = []
        start = 0
        prev_end = 0
        while start < len(units):
            end = min(start + self._size, len(units))
            if not any(unit.strip() for unit in units[start:end]):
                while end < len(units) and not units[end].strip():
                    end += 1
                end = min(end + 1, len(units))
            window = "".join(units[start:end])
            if window.strip():
                chunks.append(window)
            else:
                chunks[-1] += "".join(units[prev_end:end])
            if end >= len(units):
                break
            prev_end = end
            start = end - self._overlap

        logger.debug(
            "chunking_complete",
            unit=self._unit.value,
            units=len(units),
            num_chunks=len(chunks),
        )
        return chunks

    def strip_overlap(self, chunk: str) -> str:
        """Return *chunk* without its leading ``overlap`` units."""
        return "".join(self._to_units(chunk)[self._overlap :])

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _to_units(self, text: str) -> list[str]:
        if self._unit is ChunkUnit.CHARACTERS:
            return list(text)
        units = _WORD_UNIT.findall(text)
        leading = text[: len(text) - len(text.lstrip())]
        if leading and units:
            units[0] = leading + units[0]
        return units
