from duplicate_detector.services.duplicates import record_duplicate_groups
from duplicate_detector.services.patterns import record_patterns
from duplicate_detector.services.projects import upsert_project
from duplicate_detector.services.stats import compute_stats


class TestComputeStats:
    """Tests for compute_stats."""

    def test_user_without_rows(self, db_session, user):
        assert compute_stats(db_session, user.id) == {
            "total_projects"  : 0,
            "duplicates_found": 0,
            "similar_patterns": 0,
            "languages"       : {},
        }

    def test_unknown_user_gets_zeros(self, db_session):
        stats = compute_stats(db_session, "nobody")
        assert stats["total_projects"] == 0
        assert stats["languages"] == {}

    def test_language_breakdown(self, db_session, user, project):
        """Projects without a language are counted under 'unknown'."""
        upsert_project(db_session, user.id, "repl-2", {"title": "b", "url": "https://b", "language": "python"})
        upsert_project(db_session, user.id, "repl-3", {"title": "c", "url": "https://c", "language": "python"})
        upsert_project(db_session, user.id, "repl-4", {"title": "d", "url": "https://d"})

        stats = compute_stats(db_session, user.id)

        assert stats["total_projects"] == 4
        assert stats["languages"] == {"javascript": 1, "python": 2, "unknown": 1}

    def test_pattern_in_two_groups_counts_once(self, db_session, user, project, pattern_payload):
        a, b, c = record_patterns(db_session, user.id, project.id, [
            pattern_payload(file_path="a.js"),
            pattern_payload(file_path="b.js"),
            pattern_payload(file_path="c.js"),
        ])
        record_duplicate_groups(db_session, user.id, [
            {"pattern_ids": [a.id, b.id], "similarity_score": 90},
            {"pattern_ids": [b.id, c.id], "similarity_score": 80},
        ])

        stats = compute_stats(db_session, user.id)

        assert stats["duplicates_found"] == 2
        assert stats["similar_patterns"] == 3

    def test_counts_are_scoped_to_user(self, db_session, user, other_user, project):
        upsert_project(db_session, other_user.id, "theirs", {"title": "t", "url": "https://t", "language": "go"})
        stats = compute_stats(db_session, user.id)
        assert stats["total_projects"] == 1
        assert "go" not in stats["languages"]
