"""Split partially revealed markdown into a stable prefix and an unstable suffix.

The stable prefix is safe to render as formatted text; the unstable suffix
starts at the earliest point where an unterminated span may begin and is
withheld from formatting until more text arrives.

Tracked delimiters:
- inline code backticks
- bold markers (``**``)
- single-asterisk italics, not counting asterisks consumed by ``**``

The splitter re-scans the whole prefix on every reveal tick. That is linear
per call and the number of ticks is bounded by the text length, so the
quadratic total is accepted in exchange for a stateless function.
"""

import logging
from typing import NamedTuple

logger = logging.getLogger(__name__)

BACKTICK = "`"
BOLD = "**"
ITALIC = "*"


class SplitResult(NamedTuple):
    """Stable prefix and unstable suffix; ``stable + unstable`` is the input."""

    stable: str
    unstable: str


def _scan(text: str) -> dict[str, tuple[int, int]]:
    """Count each delimiter kind and remember where its last occurrence starts.

    ``**`` is consumed as one token before a single ``*`` is considered, so
    bold markers never count toward the italic tally. For backticks the
    offset is the start of the run holding the last backtick, which keeps a
    partial code fence together.

    Returns:
        dict: kind -> (count, offset of last occurrence, -1 if none).
    """
    counts = {BACKTICK: 0, BOLD: 0, ITALIC: 0}
    last = {BACKTICK: -1, BOLD: -1, ITALIC: -1}

    i = 0
    length = len(text)
    run_start = -1
    while i < length:
        char = text[i]
        if char == BACKTICK:
            if i == 0 or text[i - 1] != BACKTICK:
                run_start = i
            counts[BACKTICK] += 1
            last[BACKTICK] = run_start
            i += 1
        elif char == ITALIC:
            if text.startswith(BOLD, i):
                counts[BOLD] += 1
                last[BOLD] = i
                i += 2
            else:
                counts[ITALIC] += 1
                last[ITALIC] = i
                i += 1
        else:
            i += 1

    return {kind: (counts[kind], last[kind]) for kind in counts}


def split(text: str) -> SplitResult:
    """Split text into a stable prefix and an unstable suffix.

    If every tracked kind has an even count the whole text is stable.
    Otherwise the cut is the minimum of the last-occurrence offsets of the
    unbalanced kinds. Never raises: on anything unexpected the whole text
    is returned as stable.

    Args:
        text: A prefix of rich text.

    Returns:
        SplitResult: (stable, unstable).
    """
    try:
        scanned = _scan(text)
        candidates = [
            offset
            for count, offset in scanned.values()
            if count % 2 == 1 and offset >= 0
        ]
        if not candidates:
            return SplitResult(text, "")

        cutoff = min(candidates)
        if not 0 <= cutoff <= len(text):
            return SplitResult(text, "")

        return SplitResult(text[:cutoff], text[cutoff:])
    except Exception:
        logger.debug("Markdown split failed, rendering whole text as stable", exc_info=True)
        return SplitResult(text, "")
