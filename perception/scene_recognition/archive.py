"""
Reading recorded message archives.

An archive holds one JSON object per line::

    {"topic": "/scene_graphs", "stamp": 12.5, "message": {...}}

Files ending in ``.gz`` are decompressed transparently.
"""

import gzip
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional, Union

from .errors import ArchiveError


logger = logging.getLogger(__name__)


def open_maybe_gzip(path: str, mode: str):
    """Open regular or .gz files transparently (text mode 'rt'/'wt')."""
    if path.endswith(".gz"):
        return gzip.open(path, mode)
    return open(path, mode)


@dataclass
class ArchiveMessage:
    """One recorded message."""
    topic: str
    stamp: float
    message: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {"topic": self.topic, "stamp": self.stamp, "message": self.message}


class ArchiveReader(ABC):
    """Source of recorded messages."""

    @abstractmethod
    def read_messages(
        self, path: Union[str, Path], topics: Optional[Iterable[str]] = None
    ) -> Iterator[ArchiveMessage]:
        """
        Iterate over the messages of an archive in recording order.

        Args:
            path: Archive file
            topics: Only yield messages of these topics, all if None

        Raises:
            ArchiveError: If the archive cannot be opened or parsed
        """
        pass


class JsonLinesArchiveReader(ArchiveReader):
    """Reads JSON lines archives, optionally gzipped."""

    def read_messages(
        self, path: Union[str, Path], topics: Optional[Iterable[str]] = None
    ) -> Iterator[ArchiveMessage]:
        wanted = set(topics) if topics is not None else None
        path = str(path)

        try:
            f = open_maybe_gzip(path, "rt")
        except OSError as e:
            raise ArchiveError(f"Cannot open archive {path}: {e}") from e

        with f:
            try:
                for line_number, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    record = self._parse_line(path, line_number, line)
                    if wanted is None or record.topic in wanted:
                        yield record
            except (OSError, EOFError, UnicodeDecodeError) as e:
                raise ArchiveError(f"Cannot read archive {path}: {e}") from e

    @staticmethod
    def _parse_line(path: str, line_number: int, line: str) -> ArchiveMessage:
        try:
            data = json.loads(line)
            return ArchiveMessage(
                topic=str(data["topic"]),
                stamp=float(data.get("stamp", 0.0)),
                message=dict(data["message"]),
            )
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise ArchiveError(f"Malformed record at {path}:{line_number}: {e}") from e


def write_archive(path: Union[str, Path], messages: Iterable[ArchiveMessage]) -> int:
    """
    Write messages as a JSON lines archive.

    Returns:
        Number of messages written
    """
    count = 0
    with open_maybe_gzip(str(path), "wt") as f:
        for record in messages:
            f.write(json.dumps(record.to_dict()) + "\n")
            count += 1
    logger.debug(f"Wrote {count} messages to {path}")
    return count


__all__ = [
    'ArchiveMessage',
    'ArchiveReader',
    'JsonLinesArchiveReader',
    'open_maybe_gzip',
    'write_archive',
]
