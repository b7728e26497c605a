"""
History of selected commands for qx.
Backs --last, --history and --continue.
"""

import json
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from dataclasses import dataclass, asdict

from qx.errors import HistoryEmpty, HistoryError

MAX_ENTRIES = 100


@dataclass
class HistoryEntry:
    """A query and the command the user finally chose for it"""
    query: str
    selected: str
    timestamp: str
    pipe_context: Optional[str] = None

    @classmethod
    def create(cls, query: str, selected: str, pipe_context: str = "") -> "HistoryEntry":
        return cls(
            query=query,
            selected=selected,
            timestamp=datetime.now().isoformat(),
            pipe_context=pipe_context or None,
        )

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        return cls(
            query=data.get('query', ''),
            selected=data.get('selected', ''),
            timestamp=data.get('timestamp', ''),
            pipe_context=data.get('pipe_context'),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        if not self.pipe_context:
            data.pop('pipe_context')
        return data

    def display(self) -> str:
        """One-line rendering for the history picker"""
        try:
            ts = datetime.fromisoformat(self.timestamp).strftime("%b %d %H:%M")
        except ValueError:
            ts = self.timestamp
        return f"[{ts}] {self.query} → {self.selected}"


class HistoryStore:
    """Reads and writes the history file"""

    def __init__(self, history_file: Path, max_entries: int = MAX_ENTRIES):
        self.history_file = history_file
        self.max_entries = max_entries

    def _read_all(self) -> List[HistoryEntry]:
        """Load every entry, oldest first"""
        try:
            raw = self.history_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError) as e:
            raise HistoryError(f"reading history: {e}") from e

        if not raw.strip():
            return []

        try:
            data = json.loads(raw)
        except ValueError as e:
            raise HistoryError(f"parsing history {self.history_file}: {e}") from e
        if not isinstance(data, list):
            raise HistoryError(f"parsing history {self.history_file}: not a JSON list")
        return [HistoryEntry.from_dict(item) for item in data if isinstance(item, dict)]

    def _write_all(self, entries: List[HistoryEntry]) -> None:
        """Write atomically through a temp file"""
        self.history_file.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.history_file.with_name(self.history_file.name + ".tmp")
        data = json.dumps([e.to_dict() for e in entries], indent=2, ensure_ascii=False)

        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, 'w', encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp, self.history_file)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise

    def add(self, entry: HistoryEntry) -> None:
        """Append an entry, keeping only the newest max_entries"""
        entries = self._read_all()
        entries.append(entry)
        if len(entries) > self.max_entries:
            entries = entries[-self.max_entries:]
        self._write_all(entries)

    def last(self) -> HistoryEntry:
        """Most recent entry"""
        entries = self._read_all()
        if not entries:
            raise HistoryEmpty("no history yet, run a query first")
        return entries[-1]

    def list(self) -> List[HistoryEntry]:
        """All entries, newest first"""
        return list(reversed(self._read_all()))
