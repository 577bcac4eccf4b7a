"""Caption track loading and point-in-time cue lookup."""

import bisect
import re
from dataclasses import dataclass
from pathlib import Path

from .exceptions import CaptionLoadError
from .log_config import LogCategory, get_context_logger


_BLOCK_SEPARATOR = re.compile(r"\r?\n[ \t]*\r?\n")


@dataclass(frozen=True)
class CaptionCue:
    """A single timed caption."""

    start: float
    end: float
    text: str


def parse_timestamp(value: str) -> float | None:
    """Parse ``H:MM:SS.mmm`` (comma or dot decimal separator) into seconds."""
    parts = value.strip().replace(",", ".").split(":")
    if len(parts) != 3:
        return None
    try:
        hours, minutes, seconds = (float(part) for part in parts)
    except ValueError:
        return None
    return hours * 3600 + minutes * 60 + seconds


def _parse_block(block: str) -> CaptionCue | None:
    lines = [line.strip() for line in block.splitlines() if line.strip()]
    if len(lines) < 2:
        return None
    timing = lines[0].split(" --> ")
    if len(timing) != 2:
        return None
    start = parse_timestamp(timing[0])
    # Cue settings may follow the end timestamp ("00:00:02.000 align:middle")
    end_field = timing[1].split()
    end = parse_timestamp(end_field[0]) if end_field else None
    if start is None or end is None:
        return None
    return CaptionCue(start=start, end=end, text="\n".join(lines[1:]))


class CaptionTrackStore:
    """Time-ordered cue list supporting O(log n) lookups from the playback tick."""

    def __init__(self):
        self.logger = get_context_logger("caption_track_store", LogCategory.VIDEO)
        self._cues: list[CaptionCue] = []
        self._starts: list[float] = []

    @property
    def cues(self) -> list[CaptionCue]:
        return list(self._cues)

    def __len__(self) -> int:
        return len(self._cues)

    def load(self, contents: str) -> int:
        """Replace the track with cues parsed from ``contents``.

        Blocks are separated by blank lines; the first line of a block is the
        ``start --> end`` timing and the remaining lines are the cue text.
        Unparseable blocks (including a ``WEBVTT`` header) are skipped.

        Returns:
            Number of cues loaded
        """
        parsed = []
        for block in _BLOCK_SEPARATOR.split(contents):
            cue = _parse_block(block)
            if cue is not None:
                parsed.append(cue)

        parsed.sort(key=lambda cue: cue.start)
        self._cues = parsed
        self._starts = [cue.start for cue in parsed]
        self.logger.info("Closed captions loaded", cues_count=len(parsed))
        return len(parsed)

    def load_file(self, path: str | Path) -> int:
        """Load cues from a local caption file.

        Raises:
            CaptionLoadError: If the file cannot be read
        """
        try:
            contents = Path(path).read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise CaptionLoadError(
                f"Failed to read caption file: {str(e)}", context={"path": str(path)}
            ) from e
        return self.load(contents)

    def clear(self) -> None:
        self._cues = []
        self._starts = []

    def text_at(self, time: float) -> str | None:
        """Return the text of the last cue starting at or before ``time``.

        None when no cue has started yet or ``time`` is past that cue's end.
        """
        index = bisect.bisect_right(self._starts, time) - 1
        if index < 0:
            return None
        cue = self._cues[index]
        return cue.text if time <= cue.end else None


__all__ = ["CaptionCue", "CaptionTrackStore", "parse_timestamp"]
