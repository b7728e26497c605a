import unittest

from qx.tui.selector import Selector


COMMANDS = ["ls -la", "find . -name '*.py'", "LS -R", "du -sh *"]


class SelectorFilterTests(unittest.TestCase):
    def test_empty_filter_shows_everything_in_order(self) -> None:
        selector = Selector(COMMANDS)
        self.assertEqual(selector.filtered, [0, 1, 2, 3])
        self.assertEqual(len(selector), 4)

    def test_filter_is_case_insensitive_and_order_preserving(self) -> None:
        selector = Selector(COMMANDS)
        selector.set_filter("ls")
        self.assertEqual(selector.filtered, [0, 2])
        self.assertEqual([selector.label(p) for p in range(len(selector))], ["ls -la", "LS -R"])

    def test_filter_matches_substring_property(self) -> None:
        selector = Selector(COMMANDS)
        for text in ["", "l", "-", " ", "*", "PY", "nothing here"]:
            selector.set_filter(text)
            expected = [i for i, c in enumerate(COMMANDS) if text.lower() in c.lower()]
            self.assertEqual(selector.filtered, expected, text)

    def test_filter_text_is_not_trimmed(self) -> None:
        selector = Selector(["a b", "ab"])
        selector.set_filter(" ")
        self.assertEqual(selector.filtered, [0])

    def test_unchanged_filter_reports_no_change(self) -> None:
        selector = Selector(COMMANDS)
        self.assertTrue(selector.set_filter("d"))
        self.assertFalse(selector.set_filter("d"))

    def test_filter_change_resets_cursor_and_scroll(self) -> None:
        selector = Selector(COMMANDS, window=2)
        selector.move(3)
        self.assertEqual((selector.cursor, selector.scroll_offset), (3, 2))
        selector.set_filter("s")
        self.assertEqual((selector.cursor, selector.scroll_offset), (0, 0))

    def test_display_function_drives_matching(self) -> None:
        labels = ["first entry", "second entry"]
        selector = Selector(["cmd-a", "cmd-b"], display=lambda i: labels[i])
        selector.set_filter("second")
        self.assertEqual(selector.current(), 1)
        self.assertEqual(selector.label(0), "second entry")


class SelectorCursorTests(unittest.TestCase):
    def test_cursor_is_clamped(self) -> None:
        selector = Selector(COMMANDS)
        selector.move(-1)
        self.assertEqual(selector.cursor, 0)
        selector.move(10)
        self.assertEqual(selector.cursor, 3)
        selector.move(1)
        self.assertEqual(selector.cursor, 3)

    def test_cursor_stays_in_range_for_any_move_sequence(self) -> None:
        selector = Selector(COMMANDS, window=2)
        for delta in [1, 1, -1, 5, -7, 2, 1, 1, -1]:
            selector.move(delta)
            self.assertTrue(0 <= selector.cursor < len(selector))
            self.assertTrue(
                selector.scroll_offset <= selector.cursor < selector.scroll_offset + selector.window
            )

    def test_scroll_moves_by_overflow_only(self) -> None:
        selector = Selector(COMMANDS, window=2)
        selector.move(1)
        self.assertEqual(selector.scroll_offset, 0)
        selector.move(1)
        self.assertEqual(selector.scroll_offset, 1)
        selector.move(1)
        self.assertEqual(selector.scroll_offset, 2)
        selector.move(-1)
        self.assertEqual(selector.scroll_offset, 2)
        selector.move(-1)
        self.assertEqual(selector.scroll_offset, 1)
        self.assertEqual(selector.visible(), [1, 2])

    def test_shrinking_window_keeps_cursor_visible(self) -> None:
        selector = Selector(COMMANDS, window=4)
        selector.move(3)
        selector.set_window(1)
        self.assertEqual(selector.scroll_offset, 3)
        self.assertEqual(selector.visible(), [3])

    def test_empty_view_has_no_current_item(self) -> None:
        selector = Selector(COMMANDS)
        selector.set_filter("zzz")
        selector.move(1)
        self.assertIsNone(selector.current())
        self.assertEqual(selector.visible(), [])

    def test_current_maps_back_to_original_index(self) -> None:
        selector = Selector(COMMANDS)
        selector.set_filter("ls")
        selector.move(1)
        self.assertEqual(selector.current(), 2)


if __name__ == "__main__":
    unittest.main()
