"""Tests for issue body link discovery."""

import pytest

from themes_tree.github_client.links import (
    IssueLink,
    IssueLinkType,
    parse_issue_links,
)
from themes_tree.tree.ids import GitHubIssueId


def child(owner: str, repo: str, number: int) -> IssueLink:
    return IssueLink(IssueLinkType.CHILD, GitHubIssueId(owner, repo, number))


class TestParseIssueLinks:
    """Test parse_issue_links."""

    @pytest.mark.parametrize("body", [None, "", "No links in here."])
    def test_no_links(self, body: str | None) -> None:
        """Test bodies without references."""
        assert parse_issue_links("o", "r", body) == []

    def test_task_item_pointing_at_parent_is_not_a_child(self) -> None:
        """Test a task item starting with 'Parent' is skipped."""
        body = "- [ ] Parent: #42\n- [x] #7"

        assert parse_issue_links("o", "r", body) == [child("o", "r", 7)]

    def test_only_checkbox_line_is_read(self) -> None:
        """Test references in a task item's later paragraphs are not children."""
        body = "- [ ] Tracked separately\n\n  Follow-up in #9\n- [ ] #7"

        assert parse_issue_links("o", "r", body) == [child("o", "r", 7)]


    def test_parent_link_comes_first(self) -> None:
        """Test the parent hyperlink precedes children."""
        body = (
            "- [x] #7\n"
            "\n"
            "[Parent](https://github.com/o/r/issues/42)\n"
        )

        assert parse_issue_links("o", "r", body) == [
            IssueLink(IssueLinkType.PARENT, GitHubIssueId("o", "r", 42)),
            child("o", "r", 7),
        ]

    def test_only_first_parent_link_is_used(self) -> None:
        """Test at most one parent is reported."""
        body = (
            "[Parent theme](https://github.com/o/r/issues/1) and "
            "[Parent epic](https://github.com/o/r/issues/2)\n"
        )

        links = parse_issue_links("o", "r", body)

        assert links == [IssueLink(IssueLinkType.PARENT, GitHubIssueId("o", "r", 1))]

    def test_links_not_starting_with_parent_are_ignored(self) -> None:
        """Test ordinary hyperlinks outside task lists are not parents."""
        body = "See [the parent](https://github.com/o/r/issues/1)."

        assert parse_issue_links("o", "r", body) == []

    def test_reference_forms_in_task_items(self) -> None:
        """Test hyperlinks, autolinks and bare references in task items."""
        body = (
            "- [ ] https://github.com/o/r/issues/8\n"
            "- [x] [child](https://github.com/x/y/issues/9)\n"
            "- [ ] other/repo#10\n"
            "- [ ] #11 with a description\n"
            "- [ ] nothing to see\n"
        )

        assert parse_issue_links("o", "r", body) == [
            child("o", "r", 8),
            child("x", "y", 9),
            child("other", "repo", 10),
            child("o", "r", 11),
        ]

    def test_hyperlink_preferred_over_bare_reference(self) -> None:
        """Test a hyperlink in a task item wins over other references."""
        body = "- [ ] #3 tracked in [here](https://github.com/o/r/issues/4)\n"

        assert parse_issue_links("o", "r", body) == [child("o", "r", 4)]

    def test_plain_list_items_are_not_children(self) -> None:
        """Test bullet items without a checkbox are ignored."""
        body = "- #5\n- https://github.com/o/r/issues/6\n"

        assert parse_issue_links("o", "r", body) == []

    def test_non_issue_links_skipped(self) -> None:
        """Test task items linking elsewhere produce nothing."""
        body = "- [ ] [docs](https://docs.example.com/page)\n"

        assert parse_issue_links("o", "r", body) == []
