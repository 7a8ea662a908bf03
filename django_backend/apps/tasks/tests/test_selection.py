from django.test import SimpleTestCase

from apps.tasks.workflow.selection import (
    CONFLICT_WARNING, child_key, parent_of, resolve_selection,
)


def _conflicts(keys):
    return {k for k in keys if parent_of(k) in keys}


class SelectionConflictTest(SimpleTestCase):
    """Test cases for parent/child selection resolution"""

    def test_parent_with_own_child_keeps_parent(self):
        """Test selecting a story and its subtask keeps only the story"""
        resolution = resolve_selection(set(), {"1", "1-2"})

        self.assertEqual(resolution.resolved, frozenset({"1"}))
        self.assertTrue(resolution.had_conflict)
        self.assertEqual(resolution.warning, CONFLICT_WARNING)

    def test_parent_wins_over_every_child(self):
        """Test all subtasks of a selected story are dropped and the story kept"""
        resolution = resolve_selection(set(), {"1", "1-2", "1-3", "4"})

        self.assertEqual(resolution.resolved, frozenset({"1", "4"}))
        self.assertEqual(resolution.dropped, frozenset({"1-2", "1-3"}))

    def test_unrelated_rows_are_kept(self):
        """Test rows of different stories do not conflict"""
        resolution = resolve_selection({"4"}, {"1", "4-5", "7"})

        self.assertEqual(resolution.resolved, frozenset({"1", "4-5", "7"}))
        self.assertFalse(resolution.had_conflict)
        self.assertIsNone(resolution.warning)

    def test_children_of_same_parent_are_allowed(self):
        """Test several subtasks of one story may be selected together"""
        resolution = resolve_selection(set(), {"1-2", "1-3"})

        self.assertEqual(resolution.resolved, frozenset({"1-2", "1-3"}))

    def test_result_never_holds_a_conflict(self):
        """Test no resolved selection contains a parent with its own child"""
        proposals = [
            {"1", "1-2", "1-3"},
            {"1", "2", "2-3", "1-4"},
            {"10", "1-10", "10-1"},
            {"3-4", "3", "4", "4-5"},
            set(),
        ]
        for proposed in proposals:
            with self.subTest(proposed=proposed):
                resolved = resolve_selection(set(), proposed).resolved
                self.assertEqual(_conflicts(resolved), set())
                self.assertTrue(resolved <= proposed)

    def test_depends_only_on_proposal(self):
        """Test the previous selection does not change the outcome"""
        proposed = {"1", "1-2", "3"}

        self.assertEqual(
            resolve_selection(set(), proposed).resolved,
            resolve_selection({"1-2", "9"}, proposed).resolved,
        )

    def test_key_helpers(self):
        """Test composite key helpers"""
        self.assertEqual(child_key(1, 2), "1-2")
        self.assertEqual(parent_of("1-2"), "1")
        self.assertIsNone(parent_of("1"))
