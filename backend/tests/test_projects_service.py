import pytest
from datetime import datetime, timedelta, timezone

from sqlalchemy import event

from duplicate_detector.core.exceptions import ConflictError, NotFoundError, ValidationError
from duplicate_detector.models.duplicates import DuplicateGroup, PatternGroup
from duplicate_detector.models.patterns import CodePattern
from duplicate_detector.models.projects import Project
from duplicate_detector.services.duplicates import record_duplicate_groups
from duplicate_detector.services.patterns import record_patterns
from duplicate_detector.services import projects as project_service
from duplicate_detector.services.projects import (
    delete_project,
    get_project,
    list_projects,
    sync_projects,
    upsert_project,
)

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _fields(title: str, minutes: int = 0, language: str = "python") -> dict:
    return {
        "title"       : title,
        "url"         : f"https://replit.com/@ada/{title}",
        "language"    : language,
        "last_updated": BASE_TIME + timedelta(minutes=minutes),
    }


class TestUpsertProject:
    """Tests for upsert_project."""

    def test_insert(self, db_session, user):
        project = upsert_project(db_session, user.id, "ext-1", _fields("alpha"))
        assert project.id is not None
        assert project.external_id == "ext-1"
        assert project.file_count == 0

    def test_same_external_ref_updates_in_place(self, db_session, user):
        first = upsert_project(db_session, user.id, "ext-1", _fields("alpha"))
        second = upsert_project(db_session, user.id, "ext-1", dict(_fields("alpha-renamed"), file_count=4))

        assert first.id == second.id
        assert second.title == "alpha-renamed"
        assert second.file_count == 4
        assert db_session.query(Project).count() == 1

    def test_same_external_ref_for_two_users(self, db_session, user, other_user):
        """The natural key is scoped per user."""
        mine = upsert_project(db_session, user.id, "ext-1", _fields("alpha"))
        theirs = upsert_project(db_session, other_user.id, "ext-1", _fields("alpha"))
        assert mine.id != theirs.id

    def test_missing_title_is_rejected(self, db_session, user):
        with pytest.raises(ValidationError):
            upsert_project(db_session, user.id, "ext-1", {"url": "https://x"})

    def test_negative_file_count_is_rejected(self, db_session, user):
        with pytest.raises(ValidationError):
            upsert_project(db_session, user.id, "ext-1", dict(_fields("alpha"), file_count=-1))

    def test_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            upsert_project(db_session, "ghost", "ext-1", _fields("alpha"))

    def test_last_updated_defaults_to_now(self, db_session, user):
        project = upsert_project(db_session, user.id, "ext-1", {"title": "a", "url": "https://a"})
        assert project.last_updated is not None


class TestListProjects:
    """Tests for list_projects pagination."""

    def test_page_and_has_more(self, db_session, user):
        """
        Three projects, limit two: the first page is full and reports a
        further page; the second page holds the remainder.
        """
        for i, title in enumerate(["oldest", "middle", "newest"]):
            upsert_project(db_session, user.id, f"ext-{i}", _fields(title, minutes=i))

        page, has_more = list_projects(db_session, user.id, limit=2, offset=0)
        assert [p.title for p in page] == ["newest", "middle"]
        assert has_more is True

        page, has_more = list_projects(db_session, user.id, limit=2, offset=2)
        assert [p.title for p in page] == ["oldest"]
        assert has_more is False

    def test_exact_fit_has_no_more(self, db_session, user):
        for i in range(2):
            upsert_project(db_session, user.id, f"ext-{i}", _fields(f"p{i}", minutes=i))
        page, has_more = list_projects(db_session, user.id, limit=2)
        assert len(page) == 2
        assert has_more is False

    def test_ties_break_on_id(self, db_session, user):
        a = upsert_project(db_session, user.id, "ext-a", _fields("a"))
        b = upsert_project(db_session, user.id, "ext-b", _fields("b"))
        page, _ = list_projects(db_session, user.id)
        assert [p.id for p in page] == [b.id, a.id]

    def test_only_own_projects(self, db_session, user, other_user):
        upsert_project(db_session, other_user.id, "ext-x", _fields("theirs"))
        page, has_more = list_projects(db_session, user.id)
        assert page == []
        assert has_more is False

    @pytest.mark.parametrize("limit,offset", [(0, 0), (101, 0), (10, -1)])
    def test_bad_page_arguments(self, db_session, user, limit, offset):
        with pytest.raises(ValidationError):
            list_projects(db_session, user.id, limit=limit, offset=offset)


class TestDeleteProject:
    """Tests for delete_project."""

    def test_cascades_to_patterns_and_groups(self, db_session, user, project, pattern_payload):
        """
        Deleting the project removes its patterns, their group links and
        the groups left with fewer than two members.
        """
        created = record_patterns(db_session, user.id, project.id, [
            pattern_payload(file_path="src/a.js"),
            pattern_payload(file_path="src/b.js"),
        ])
        record_duplicate_groups(db_session, user.id, [
            {"pattern_ids": [p.id for p in created], "similarity_score": 95},
        ])

        delete_project(db_session, user.id, project.id)

        assert db_session.query(Project).count() == 0
        assert db_session.query(CodePattern).count() == 0
        assert db_session.query(PatternGroup).count() == 0
        assert db_session.query(DuplicateGroup).count() == 0

    def test_other_users_project_is_not_found(self, db_session, project, other_user):
        with pytest.raises(NotFoundError):
            delete_project(db_session, other_user.id, project.id)
        assert db_session.query(Project).count() == 1

    def test_unknown_id(self, db_session, user):
        with pytest.raises(NotFoundError):
            delete_project(db_session, user.id, 9999)

    def test_get_project_checks_owner(self, db_session, project, other_user):
        with pytest.raises(NotFoundError):
            get_project(db_session, other_user.id, project.id)


class TestSyncProjects:
    """Tests for sync_projects."""

    def test_upserts_and_prunes(self, db_session, user):
        upsert_project(db_session, user.id, "keep", _fields("keep"))
        upsert_project(db_session, user.id, "gone", _fields("gone"))

        synced = sync_projects(db_session, user.id, [
            dict(_fields("keep-renamed"), external_id="keep"),
            dict(_fields("fresh"), external_id="new"),
        ])

        assert [p.external_id for p in synced] == ["keep", "new"]
        refs = {p.external_id for p in db_session.query(Project).all()}
        assert refs == {"keep", "new"}

    def test_without_prune_keeps_unlisted(self, db_session, user):
        upsert_project(db_session, user.id, "old", _fields("old"))
        sync_projects(db_session, user.id, [dict(_fields("new"), external_id="new")], prune=False)
        assert db_session.query(Project).count() == 2

    def test_prune_leaves_other_users_alone(self, db_session, user, other_user):
        upsert_project(db_session, other_user.id, "theirs", _fields("theirs"))
        sync_projects(db_session, user.id, [])
        assert db_session.query(Project).filter(Project.user_id == other_user.id).count() == 1

    def test_one_bad_entry_rejects_everything(self, db_session, user):
        upsert_project(db_session, user.id, "old", _fields("old"))

        with pytest.raises(ValidationError) as exc:
            sync_projects(db_session, user.id, [
                dict(_fields("fine"), external_id="ok"),
                {"external_id": "broken"},
            ])

        assert exc.value.errors[0]["loc"][0] == 1
        refs = {p.external_id for p in db_session.query(Project).all()}
        assert refs == {"old"}

    def test_duplicate_entries_last_wins(self, db_session, user):
        synced = sync_projects(db_session, user.id, [
            dict(_fields("first"), external_id="dup"),
            dict(_fields("second"), external_id="dup"),
        ])
        assert len(synced) == 1
        assert synced[0].title == "second"


class TestConcurrentWriters:
    """Writes that race with another writer on the same user."""

    @staticmethod
    def _cache_first(db_session, user_id: str, external_id: str):
        """Inserts the same project on the session's connection right before the next flush."""
        def insert_row(session, flush_context, instances):
            session.connection().execute(
                Project.__table__.insert().values(
                    user_id=user_id, external_id=external_id, title="other writer", url="https://x"
                )
            )
        event.listen(db_session, "before_flush", insert_row, once=True)

    def test_upsert_race_surfaces_as_conflict(self, db_session, user):
        """
        A unique violation on (user_id, external_id) must come back as
        ConflictError, with the transaction rolled back.
        """
        self._cache_first(db_session, user.id, "repl-race")

        with pytest.raises(ConflictError):
            upsert_project(db_session, user.id, "repl-race", _fields("mine"))

        assert db_session.query(Project).count() == 0

    def test_sync_race_surfaces_as_conflict(self, db_session, user):
        upsert_project(db_session, user.id, "kept", _fields("kept"))
        self._cache_first(db_session, user.id, "repl-race")

        with pytest.raises(ConflictError):
            sync_projects(db_session, user.id, [dict(_fields("mine"), external_id="repl-race")])

        refs = {p.external_id for p in db_session.query(Project).all()}
        assert refs == {"kept"}

    def test_delete_locks_owner_before_project(self, db_session, user, project, monkeypatch):
        calls = []
        real_lock_owner = project_service.lock_owner
        real_get_project = project_service.get_project

        def lock_owner(db, user_id):
            calls.append(("owner", user_id))
            return real_lock_owner(db, user_id)

        def get_project(db, user_id, project_id, for_update=False):
            calls.append(("project", for_update))
            return real_get_project(db, user_id, project_id, for_update=for_update)

        monkeypatch.setattr(project_service, "lock_owner", lock_owner)
        monkeypatch.setattr(project_service, "get_project", get_project)

        delete_project(db_session, user.id, project.id)

        assert calls == [("owner", user.id), ("project", True)]

    def test_sync_locks_owner(self, db_session, user, monkeypatch):
        calls = []
        real_lock_owner = project_service.lock_owner
        monkeypatch.setattr(
            project_service, "lock_owner",
            lambda db, user_id: calls.append(user_id) or real_lock_owner(db, user_id)
        )

        sync_projects(db_session, user.id, [])

        assert calls == [user.id]

    def test_sync_for_unknown_user(self, db_session):
        with pytest.raises(NotFoundError):
            sync_projects(db_session, "ghost", [])
