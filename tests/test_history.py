import json
import os
import stat
import tempfile
import unittest
from pathlib import Path

from qx.core.history import HistoryEntry, HistoryStore
from qx.errors import HistoryEmpty, HistoryError


class HistoryStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "qx" / "history.json"
        self.store = HistoryStore(self.path)

    def tearDown(self) -> None:
        self.tmp.cleanup()

    def test_empty_store(self) -> None:
        self.assertEqual(self.store.list(), [])
        with self.assertRaises(HistoryEmpty):
            self.store.last()

    def test_add_and_read_back(self) -> None:
        self.store.add(HistoryEntry.create("list files", "ls"))
        self.store.add(HistoryEntry.create("disk usage", "du -sh .", pipe_context="ctx"))

        self.assertEqual(self.store.last().selected, "du -sh .")
        self.assertEqual([e.query for e in self.store.list()], ["disk usage", "list files"])
        self.assertEqual(self.store.last().pipe_context, "ctx")

    def test_file_is_private_json_list(self) -> None:
        self.store.add(HistoryEntry.create("list files", "ls"))
        data = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(data[0]["selected"], "ls")
        self.assertNotIn("pipe_context", data[0])
        self.assertEqual(stat.S_IMODE(os.stat(self.path).st_mode), 0o600)
        self.assertFalse(self.path.with_name("history.json.tmp").exists())

    def test_keeps_newest_entries(self) -> None:
        store = HistoryStore(self.path, max_entries=3)
        for i in range(5):
            store.add(HistoryEntry.create(f"query {i}", f"cmd {i}"))
        self.assertEqual([e.selected for e in store.list()], ["cmd 4", "cmd 3", "cmd 2"])

    def test_blank_file_is_empty(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text("  \n", encoding="utf-8")
        self.assertEqual(self.store.list(), [])

    def test_non_list_file_raises(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text('{"not": "a list"}', encoding="utf-8")
        with self.assertRaises(HistoryError):
            self.store.list()

    def test_invalid_json_raises_history_error(self) -> None:
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json", encoding="utf-8")
        with self.assertRaises(HistoryError) as ctx:
            self.store.last()
        self.assertIn("parsing history", str(ctx.exception))

    def test_unreadable_file_raises_history_error(self) -> None:
        self.path.mkdir(parents=True)
        with self.assertRaises(HistoryError) as ctx:
            self.store.list()
        self.assertIn("reading history", str(ctx.exception))


class HistoryEntryTests(unittest.TestCase):
    def test_display(self) -> None:
        entry = HistoryEntry("list files", "ls", "2024-01-02T15:04:05")
        self.assertEqual(entry.display(), "[Jan 02 15:04] list files → ls")

    def test_display_with_bad_timestamp(self) -> None:
        entry = HistoryEntry("q", "c", "yesterday")
        self.assertEqual(entry.display(), "[yesterday] q → c")

    def test_from_dict_tolerates_missing_fields(self) -> None:
        entry = HistoryEntry.from_dict({"query": "q"})
        self.assertEqual((entry.query, entry.selected, entry.pipe_context), ("q", "", None))


if __name__ == "__main__":
    unittest.main()
