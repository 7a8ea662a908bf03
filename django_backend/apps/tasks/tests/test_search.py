from django.test import SimpleTestCase, override_settings

from apps.tasks.workflow.hierarchy import build_hierarchy
from apps.tasks.workflow.records import UserRef
from apps.tasks.workflow.search import (
    COLUMN, GLOBAL, SearchState, apply_search, record_matches, search_fields_for,
)

from .helpers import story, subtask

FIELDS = ("name", "tcode", "project.name", "assignees.username")


class SearchMatchTest(SimpleTestCase):
    """Test cases for matching queries against task records"""

    def setUp(self):
        """Set up test data"""
        self.records = [
            story(1, "Audit Q1", tcode="T-0001"),
            subtask(2, "Collect receipts", parent=1, assignees=(UserRef(3, "mira"),)),
            story(4, "VAT Return"),
            subtask(5, "Client meeting notes"),
        ]
        self.tree = build_hierarchy(self.records)

    def test_child_match_keeps_story_visible_and_expanded(self):
        """Test a subtask match surfaces and expands its story"""
        result = apply_search(self.tree, "recei", FIELDS)

        self.assertFalse(result.matches["1"].self_match)
        self.assertTrue(result.matches["1"].any_child_match)
        self.assertEqual(result.expanded, frozenset({"1"}))
        self.assertEqual(result.visible, frozenset({"1", "1-2"}))

    def test_story_match_shows_all_children(self):
        """Test a matching story brings every subtask along"""
        result = apply_search(self.tree, "audit", FIELDS)

        self.assertTrue(result.matches["1"].self_match)
        self.assertIn("1-2", result.visible)
        self.assertEqual(result.expanded, frozenset({"1"}))

    def test_matching_story_without_children_not_expanded(self):
        """Test a matched story with no subtasks is visible but not expanded"""
        result = apply_search(self.tree, "vat", FIELDS)

        self.assertEqual(result.visible, frozenset({"4"}))
        self.assertEqual(result.expanded, frozenset())

    def test_standalone_task_matches(self):
        """Test standalone tasks are matched on their own fields"""
        result = apply_search(self.tree, "MEETING", FIELDS)

        self.assertEqual(result.visible, frozenset({"5"}))

    def test_blank_query_shows_everything(self):
        """Test a blank query shows every row and expands nothing"""
        result = apply_search(self.tree, "   ", FIELDS)

        self.assertFalse(result.active)
        self.assertEqual(result.visible, frozenset(n.key for n in self.tree.iter_nodes()))
        self.assertEqual(result.expanded, frozenset())

    def test_nested_and_list_fields(self):
        """Test dotted paths resolve through projects and assignee lists"""
        self.assertTrue(record_matches(self.records[1], "MIR", FIELDS))
        self.assertTrue(record_matches(self.records[0], "acme", FIELDS))

    def test_missing_field_path_does_not_match(self):
        """Test a path that resolves to nothing is treated as no match"""
        record = subtask(9, "Orphan", project=None)

        self.assertFalse(record_matches(record, "acme", ("project.name",)))
        self.assertFalse(record_matches(record, "x", ("no.such.path",)))

    def test_search_is_idempotent(self):
        """Test evaluating the same query twice gives the same result"""
        first = apply_search(self.tree, "re", FIELDS)
        second = apply_search(self.tree, "re", FIELDS)

        self.assertEqual(first, second)

    def test_no_match_hides_everything(self):
        """Test a query with no hits leaves no visible rows"""
        result = apply_search(self.tree, "zzz", FIELDS)

        self.assertTrue(result.active)
        self.assertEqual(result.visible, frozenset())


class SearchFieldsTest(SimpleTestCase):
    """Test cases for per-view search field lists"""

    def test_default_view(self):
        """Test the project view is used when no view is named"""
        self.assertIn("assignees.username", search_fields_for())

    def test_unknown_view_falls_back(self):
        """Test an unknown view falls back to the default field list"""
        with self.assertLogs("apps.tasks.workflow.search", level="WARNING"):
            fields = search_fields_for("nope")

        self.assertEqual(fields, search_fields_for("project_tasks"))

    @override_settings(TASK_SEARCH_FIELDS={"all_tasks": ["name"]})
    def test_settings_override(self):
        """Test TASK_SEARCH_FIELDS replaces a view's field list"""
        self.assertEqual(search_fields_for("all_tasks"), ("name",))


class SearchStateTest(SimpleTestCase):
    """Test cases for the column and global query channels"""

    def test_column_query_blanks_global(self):
        """Test activating the column channel clears the global text"""
        state = SearchState().with_global("audit").with_column("name", "vat")

        self.assertEqual(state.active_channel, COLUMN)
        self.assertEqual(state.global_query, "")
        self.assertEqual(state.global_last, "audit")
        self.assertEqual(state.active_fields(FIELDS), ("name",))

    def test_global_query_blanks_column(self):
        """Test activating the global channel clears the column text"""
        state = SearchState().with_column("name", "vat").with_global("audit")

        self.assertEqual(state.active_channel, GLOBAL)
        self.assertEqual(state.column_query, "")
        self.assertEqual(state.column_last, "vat")
        self.assertEqual(state.active_fields(FIELDS), FIELDS)

    def test_only_active_channel_highlights(self):
        """Test only the active channel produces highlight text"""
        state = SearchState().with_column("name", "vat")

        self.assertEqual(state.highlights(COLUMN, "name"), "vat")
        self.assertEqual(state.highlights(COLUMN, "tcode"), "")
        self.assertEqual(state.highlights(GLOBAL), "")

    def test_cleared(self):
        """Test clearing leaves no active channel"""
        state = SearchState().with_global("audit").cleared()

        self.assertIsNone(state.active_channel)
        self.assertEqual(state.active_query, "")
