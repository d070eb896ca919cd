"""
Visibility & moderation engine tests.

Tests that verify:
1. Anonymous viewers only ever see approved projects (list and fetch)
2. Only admins can change status, edit or delete, and denied calls never write
3. Submission validation happens before anything is stored
4. Pagination, ordering and filters

Run: pytest projecthub/test_moderation.py -v
"""

import pytest
from sqlalchemy import text

from projecthub import db, moderation, repository
from projecthub.errors import Forbidden, InvalidArgument, NotFound, Unauthenticated
from projecthub.models import Identity, ProjectStatus, Role


def _project_count():
    with db.get_db_connection() as conn:
        return repository.count_projects(conn)


def _comment_count(project_id):
    with db.get_db_connection() as conn:
        return repository.count_comments(conn, project_id)


class TestCanView:
    def test_anonymous_sees_only_approved(self):
        assert moderation.can_view(None, "approved") is True
        assert moderation.can_view(None, "pending") is False
        assert moderation.can_view(None, ProjectStatus.rejected) is False

    @pytest.mark.parametrize("role", [Role.user, Role.admin])
    @pytest.mark.parametrize("status", list(ProjectStatus))
    def test_authenticated_sees_every_status(self, role, status):
        viewer = Identity(id=1, email="v@test.com", role=role)
        assert moderation.can_view(viewer, status) is True


class TestListProjects:
    def test_anonymous_sees_project_iff_approved(self, user, make_project):
        approved = make_project(user, status="approved")
        make_project(user, status="pending")
        make_project(user, status="rejected")

        ids = [p.id for p in moderation.list_projects(None)]
        assert ids == [approved.id]

    def test_anonymous_status_filter_is_forced_to_approved(self, user, make_project):
        approved = make_project(user, status="approved")
        make_project(user, status="pending")

        filters = moderation.ProjectFilters(status="pending")
        ids = [p.id for p in moderation.list_projects(None, filters)]
        assert ids == [approved.id], "anonymous callers must not be able to request pending projects"

    def test_authenticated_sees_all_and_can_filter(self, user, make_project):
        approved = make_project(user, status="approved")
        pending = make_project(user)
        rejected = make_project(user, status="rejected")

        all_ids = {p.id for p in moderation.list_projects(user)}
        assert all_ids == {approved.id, pending.id, rejected.id}

        pending_only = moderation.list_projects(user, moderation.ProjectFilters(status="pending"))
        assert [p.id for p in pending_only] == [pending.id]

    def test_unknown_status_filter_is_invalid(self, user):
        with pytest.raises(InvalidArgument):
            moderation.list_projects(user, moderation.ProjectFilters(status="archived"))

    def test_second_page_holds_the_oldest_projects(self, user, make_project):
        created = [make_project(user, status="approved") for _ in range(15)]

        page = moderation.list_projects(None, moderation.ProjectFilters(page=2, limit=10))

        assert len(page) == 5
        assert [p.id for p in page] == [p.id for p in reversed(created[:5])]

    def test_ordering_is_newest_first_with_id_tiebreak(self, user, make_project):
        first = make_project(user, status="approved")
        second = make_project(user, status="approved")
        # Force identical timestamps; id decides
        with db.get_db_connection() as conn:
            conn.execute(text("UPDATE projects SET created_at = '2024-01-01T00:00:00.000000+00:00'"))

        ids = [p.id for p in moderation.list_projects(None)]
        assert ids == [second.id, first.id]

    @pytest.mark.parametrize("page,limit", [(0, 10), (-1, 10), (1, 0), (1, -5)])
    def test_page_and_limit_below_one_are_errors(self, page, limit):
        with pytest.raises(InvalidArgument):
            moderation.list_projects(None, moderation.ProjectFilters(page=page, limit=limit))

    def test_filters_by_category_year_search_and_tags(self, user, make_project):
        target = make_project(
            user, status="approved",
            title="Solar Tracker", category="hardware", academic_year="2023-2024",
            tags=["iot", "energy"],
        )
        make_project(user, status="approved", title="Solar Website", category="web", tags=["iot"])
        make_project(user, status="approved", title="Chess Bot", category="hardware", tags=["ai"])

        def ids(**kw):
            return [p.id for p in moderation.list_projects(None, moderation.ProjectFilters(**kw))]

        assert ids(category="hardware", search="solar") == [target.id]
        assert ids(academic_year="2023-2024") == [target.id]
        assert ids(search="TRACKER") == [target.id]
        assert ids(tags=["iot", "energy"]) == [target.id]
        assert len(ids(tags=["iot"])) == 2

    def test_search_treats_wildcards_literally(self, user, make_project):
        make_project(user, status="approved", title="Plain title")
        literal = make_project(user, status="approved", title="100% done")

        ids = [p.id for p in moderation.list_projects(None, moderation.ProjectFilters(search="%"))]
        assert ids == [literal.id]

    def test_results_embed_author_summary(self, user, make_project):
        make_project(user, status="approved")
        project = moderation.list_projects(None)[0]
        assert project.author.name == "Uma User"
        assert project.author.email == "user@test.com"


class TestGetProject:
    @pytest.mark.parametrize("status", ["pending", "rejected"])
    def test_anonymous_gets_not_found_for_hidden_project(self, user, make_project, status):
        project = make_project(user, status=status)
        with pytest.raises(NotFound):
            moderation.get_project(None, project.id)

    def test_missing_project_is_not_found(self, user):
        with pytest.raises(NotFound):
            moderation.get_project(user, 9999)

    def test_hidden_and_missing_look_the_same(self, user, make_project):
        hidden = make_project(user)
        with pytest.raises(NotFound) as hidden_exc:
            moderation.get_project(None, hidden.id)
        with pytest.raises(NotFound) as missing_exc:
            moderation.get_project(None, 9999)
        assert hidden_exc.value.to_dict() == missing_exc.value.to_dict()

    def test_comments_are_newest_first(self, user, other_user, make_project):
        project = make_project(user, status="approved")
        first = moderation.add_comment(user, project.id, "first")
        second = moderation.add_comment(other_user, project.id, "second")

        detail = moderation.get_project(None, project.id)
        assert [c.id for c in detail.comments] == [second.id, first.id]
        assert detail.comments[0].user.name == "Otto Other"

    def test_tags_round_trip_order_independent(self, user, make_project):
        project = make_project(user, tags=["b", "a", "c", "a"])
        detail = moderation.get_project(user, project.id)
        assert detail.tags == {"a", "b", "c"}

    def test_display_thumbnail_falls_back_without_touching_stored_value(self, user, make_project):
        project = make_project(user)
        detail = moderation.get_project(user, project.id)
        assert detail.thumbnail is None
        assert detail.display_thumbnail.startswith("https://")
        assert moderation.get_project(user, project.id).display_thumbnail == detail.display_thumbnail


class TestCreateProject:
    def test_new_project_is_pending_and_owned_by_author(self, user, make_project):
        project = make_project(user)
        assert project.status == ProjectStatus.pending
        assert project.author_id == user.id

    def test_empty_title_is_rejected_and_nothing_is_stored(self, user):
        before = _project_count()
        draft = moderation.ProjectDraft(title="", description="d", category="c", academic_year="y")
        with pytest.raises(InvalidArgument) as exc:
            moderation.create_project(user, draft)
        assert exc.value.fields == ["title"]
        assert _project_count() == before

    def test_whitespace_only_fields_count_as_missing(self, user):
        draft = moderation.ProjectDraft(title="t", description="   ", category="c", academic_year=" ")
        with pytest.raises(InvalidArgument) as exc:
            moderation.create_project(user, draft)
        assert exc.value.fields == ["description", "academicYear"]

    def test_thumbnail_must_be_http_url(self, user):
        draft = moderation.ProjectDraft(
            title="t", description="d", category="c", academic_year="y", thumbnail="not-a-url",
        )
        with pytest.raises(InvalidArgument):
            moderation.create_project(user, draft)

    def test_empty_thumbnail_is_stored_as_null(self, user):
        draft = moderation.ProjectDraft(
            title="t", description="d", category="c", academic_year="y", thumbnail="",
        )
        project = moderation.create_project(user, draft)
        assert project.thumbnail is None

    def test_valid_thumbnail_is_kept(self, user):
        draft = moderation.ProjectDraft(
            title="t", description="d", category="c", academic_year="y",
            thumbnail="  https://img.example.com/a.png ",
        )
        project = moderation.create_project(user, draft)
        assert project.thumbnail == "https://img.example.com/a.png"

    @pytest.mark.parametrize("tags", ['{"a": 1}', "not json", '"single"', "[1, 2]", 42])
    def test_malformed_tags_are_rejected(self, user, tags):
        draft = moderation.ProjectDraft(title="t", description="d", category="c", academic_year="y", tags=tags)
        with pytest.raises(InvalidArgument):
            moderation.create_project(user, draft)

    def test_json_tags_are_accepted(self, user):
        draft = moderation.ProjectDraft(
            title="t", description="d", category="c", academic_year="y", tags='["ml", " vision "]',
        )
        assert moderation.create_project(user, draft).tags == {"ml", "vision"}

    def test_anonymous_cannot_create(self):
        draft = moderation.ProjectDraft(title="t", description="d", category="c", academic_year="y")
        with pytest.raises(Unauthenticated):
            moderation.create_project(None, draft)


class TestTransitionStatus:
    def test_non_admin_is_forbidden_and_nothing_changes(self, user, make_project):
        project = make_project(user)
        with pytest.raises(Forbidden):
            moderation.transition_status(user, project.id, "approved")

        after = moderation.get_project(user, project.id)
        assert after.status == ProjectStatus.pending
        assert after.updated_at == project.updated_at

    def test_approve_twice_is_idempotent(self, admin, user, make_project):
        project = make_project(user)
        first = moderation.transition_status(admin, project.id, "approved")
        with db.get_db_connection() as conn:
            conn.execute(
                text("UPDATE projects SET updated_at = :old WHERE id = :id"),
                {"old": "2000-01-01T00:00:00.000000+00:00", "id": project.id},
            )
        stale = moderation.get_project(user, project.id).updated_at
        second = moderation.transition_status(admin, project.id, "approved")

        assert first.status == second.status == ProjectStatus.approved
        assert second.updated_at > stale
        assert second.updated_at.year > 2000

    def test_any_status_can_move_to_any_other(self, admin, user, make_project):
        project = make_project(user)
        for status in ("rejected", "approved", "pending", "approved"):
            assert moderation.transition_status(admin, project.id, status).status.value == status

    def test_unknown_status_is_invalid(self, admin, user, make_project):
        project = make_project(user)
        with pytest.raises(InvalidArgument):
            moderation.transition_status(admin, project.id, "published")

    def test_missing_project_is_not_found(self, admin):
        with pytest.raises(NotFound):
            moderation.transition_status(admin, 424242, "approved")

    def test_revoked_admin_cannot_transition_with_stale_identity(self, admin, user, make_project):
        project = make_project(user)
        with db.get_db_connection() as conn:
            conn.execute(text("UPDATE users SET role = 'user' WHERE id = :id"), {"id": admin.id})

        with pytest.raises(Forbidden):
            moderation.transition_status(admin, project.id, "approved")
        assert moderation.get_project(user, project.id).status == ProjectStatus.pending


class TestUpdateAndDelete:
    def test_admin_partial_update(self, admin, user, make_project):
        project = make_project(user, title="Old", category="web")
        updated = moderation.update_project(admin, project.id, moderation.ProjectPatch(title="  New  "))

        assert updated.title == "New"
        assert updated.category == "web"
        assert updated.status == project.status
        assert updated.author_id == project.author_id
        assert updated.created_at == project.created_at

    def test_non_admin_cannot_update(self, user, make_project):
        project = make_project(user)
        with pytest.raises(Forbidden):
            moderation.update_project(user, project.id, moderation.ProjectPatch(title="Hijack"))

    def test_empty_patch_is_invalid(self, admin, user, make_project):
        project = make_project(user)
        with pytest.raises(InvalidArgument):
            moderation.update_project(admin, project.id, moderation.ProjectPatch())
        with pytest.raises(InvalidArgument):
            moderation.update_project(admin, project.id, moderation.ProjectPatch(title=" "))

    def test_update_missing_project_is_not_found(self, admin):
        with pytest.raises(NotFound):
            moderation.update_project(admin, 9999, moderation.ProjectPatch(title="x"))

    def test_delete_removes_project_and_comments(self, admin, user, other_user, make_project):
        project = make_project(user, status="approved")
        moderation.add_comment(user, project.id, "nice")
        moderation.add_comment(other_user, project.id, "great")
        assert _comment_count(project.id) == 2

        moderation.delete_project(admin, project.id)

        assert _comment_count(project.id) == 0
        with pytest.raises(NotFound):
            moderation.get_project(admin, project.id)

    def test_non_admin_cannot_delete(self, user, make_project):
        project = make_project(user)
        with pytest.raises(Forbidden):
            moderation.delete_project(user, project.id)
        assert moderation.get_project(user, project.id).id == project.id

    def test_delete_missing_project_is_not_found(self, admin):
        with pytest.raises(NotFound):
            moderation.delete_project(admin, 9999)


class TestComments:
    def test_authenticated_user_can_comment_on_pending_project(self, user, other_user, make_project):
        project = make_project(user)
        comment = moderation.add_comment(other_user, project.id, "  looks good ")
        assert comment.content == "looks good"
        assert comment.user.id == other_user.id
        assert comment.project_id == project.id

    def test_anonymous_cannot_comment(self, user, make_project):
        project = make_project(user, status="approved")
        with pytest.raises(Unauthenticated):
            moderation.add_comment(None, project.id, "hi")

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_content_is_invalid(self, user, make_project, content):
        project = make_project(user, status="approved")
        with pytest.raises(InvalidArgument):
            moderation.add_comment(user, project.id, content)

    def test_comment_on_missing_project_is_not_found(self, user):
        with pytest.raises(NotFound):
            moderation.add_comment(user, 9999, "hello")


class TestProjectStats:
    def test_counts_and_recent(self, admin, user, make_project):
        make_project(user)
        make_project(user, status="approved")
        make_project(user, status="approved")
        latest = make_project(user, status="rejected")

        stats = moderation.project_stats(admin)
        assert (stats.total, stats.pending, stats.approved, stats.rejected) == (4, 1, 2, 1)
        assert stats.recent[0].id == latest.id
        assert stats.recent[0].author == "Uma User"

    def test_non_admin_is_forbidden(self, user):
        with pytest.raises(Forbidden):
            moderation.project_stats(user)
