"""Tests for issue data reconciliation across articles."""

import pytest

from deposit_errors import ConflictError, InputError
from deposit_tasks import collect_conflicts, reconcile_issue_data, resolve_editors
from models.myst import ResolvedPerson


class TestReconcileIssueData:
    """Venue, volume and issue fields must agree across an issue."""

    def test_identical_values_pass(self, make_article):
        articles = [
            make_article(venue={"title": "SciPy"}, volume=1),
            make_article(venue={"title": "SciPy"}, volume=1),
        ]
        issue = reconcile_issue_data(articles)
        assert issue.venue_title == "SciPy"
        assert issue.volume_number == "1"

    def test_conflict_names_both_values(self, make_article):
        articles = [
            make_article(venue={"title": "SciPy 2023"}),
            make_article(venue={"title": "SciPy 2024"}),
        ]
        with pytest.raises(ConflictError) as exc_info:
            reconcile_issue_data(articles)

        assert exc_info.value.field == "venue.title"
        assert "SciPy 2023" in str(exc_info.value)
        assert "SciPy 2024" in str(exc_info.value)

    def test_text_and_number_agree(self, make_article):
        articles = [
            make_article(volume={"number": "3"}),
            make_article(volume={"number": 3}),
        ]
        assert reconcile_issue_data(articles).volume_number == "3"

    def test_missing_values_are_filled_from_other_articles(self, make_article):
        articles = [
            make_article(venue={"title": ""}),
            make_article(venue={"title": "SciPy", "short_title": "SciPy 2024"}),
        ]
        issue = reconcile_issue_data(articles)
        assert issue.venue_title == "SciPy"
        assert issue.venue_short_title == "SciPy 2024"

    def test_no_articles_give_empty_issue(self):
        issue = reconcile_issue_data([])
        assert issue.venue_title is None
        assert issue.editors == ()

    def test_collect_conflicts_reports_every_conflict(self, make_article):
        articles = [
            make_article(venue={"title": "A", "url": "https://a.example"}),
            make_article(venue={"title": "B", "url": "https://b.example"}),
        ]
        issue, conflicts = collect_conflicts(articles)

        assert [conflict.field for conflict in conflicts] == ["venue.title", "venue.url"]
        assert issue.venue_title == "A"


class TestResolveEditors:
    """Editors come from the last article that lists any."""

    def test_editors_from_one_article(self, make_article):
        editor_article = make_article(
            editors=["ed"],
            contributors=[{"id": "ed", "name": "Ed Itor", "affiliations": ["zen"]}],
        )
        issue = reconcile_issue_data([editor_article, make_article()])
        assert issue.editors == (ResolvedPerson(name="Itor, Ed", affiliation="Zenodo"),)

    def test_last_non_empty_list_wins(self, make_article):
        first = make_article(editors=["a"], contributors=[{"id": "a", "name": "Ann Alpha"}])
        second = make_article(editors=["b"], contributors=[{"id": "b", "name": "Bob Beta"}])
        editors = resolve_editors([first, second, make_article()])
        assert [editor.name for editor in editors] == ["Beta, Bob"]

    def test_editor_found_among_authors(self, make_article):
        article = make_article(
            editors=["jdoe"],
            authors=[{"id": "jdoe", "name": "Jane Doe", "orcid": "0000-0002-1825-0097"}],
        )
        (editor,) = resolve_editors([article])
        assert editor.name == "Doe, Jane"
        assert editor.orcid == "0000-0002-1825-0097"
        assert editor.affiliation is None

    def test_unknown_editor_raises(self, make_article):
        with pytest.raises(InputError):
            resolve_editors([make_article(editors=["ghost"])])
