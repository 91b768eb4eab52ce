"""Tests for the fork engine.

Coverage:
  1. Completeness: lineage, draft flags, zeroed counters, steps, tags
  2. Source visibility: drafts / unapproved / missing -> SourceNotAvailable
  3. Missing actor profile -> ActorProfileMissing
  4. Slug exhaustion -> SlugExhausted, nothing written
  5. Compensation: step or tag copy failure leaves no fork behind
  6. Fork counter failure does not undo the fork
"""

import logging
from unittest.mock import patch

import pytest

from stepwise.core.exceptions import ConflictError, InternalError, NotFoundError
from stepwise.models import db
from stepwise.models.project import Project, ProjectTag
from stepwise.models.step import PromptStep
from stepwise.services import fork_engine


def _project_count():
    return Project.query.count()


class TestForkCompleteness:
    def test_fork_copies_content_and_lineage(self, public_project, bob):
        result = fork_engine.fork_project(public_project.id, bob.id)

        fork = db.session.get(Project, result.id)
        assert fork.author_id == bob.id
        assert fork.forked_from_id == public_project.id
        assert fork.inspired_by_id == public_project.id
        assert fork.is_published is False
        assert fork.is_approved is False
        assert (fork.star_count, fork.fork_count, fork.comment_count) == (0, 0, 0)
        assert fork.title == public_project.title
        assert fork.tool == public_project.tool
        assert fork.category == public_project.category

        steps = PromptStep.query.filter_by(project_id=fork.id).order_by(PromptStep.step_order).all()
        assert [s.step_order for s in steps] == [1, 2, 3]
        assert [s.title for s in steps] == ["Step 1", "Step 2", "Step 3"]
        assert all(s.fork_note is None for s in steps)

        assert sorted(t.tag_name for t in fork.tags) == ["nextjs", "tailwind"]

    def test_fork_increments_source_counter_once(self, public_project, bob):
        fork_engine.fork_project(public_project.id, bob.id)
        db.session.refresh(public_project)
        assert public_project.fork_count == 1

    def test_result_shape(self, public_project, bob):
        result = fork_engine.fork_project(public_project.id, bob.id)
        data = result.to_dict()
        assert set(data) == {"id", "slug", "actorHandle"}
        assert data["actorHandle"] == "bob"
        assert data["slug"].startswith(public_project.slug + "-")
        assert len(data["slug"]) == len(public_project.slug) + 5

    def test_state_transitions_are_logged(self, public_project, bob, caplog):
        caplog.set_level(logging.DEBUG, logger="stepwise.services")
        fork_engine.fork_project(public_project.id, bob.id)

        text = caplog.text
        marks = [
            "state=Loading",
            "state=SlugResolving",
            "step Inserted done",
            "step StepsCopied done",
            "step TagsCopied done",
            "state=Counted",
            "state=Done",
        ]
        positions = [text.index(mark) for mark in marks]
        assert positions == sorted(positions)

    def test_fork_chain_slugs_fit_column(self, alice, bob, make_project):
        source = make_project(alice.id, title="Long", slug="a" * 58 + "-b")
        lengths = []
        for _ in range(6):
            result = fork_engine.fork_project(source.id, bob.id)
            lengths.append(len(result.slug))
            source = db.session.get(Project, result.id)
            source.is_published = source.is_approved = True
            db.session.commit()

        assert lengths[:4] == [65, 70, 75, 80]
        assert all(length <= 80 for length in lengths)
        assert not any("--" in p.slug for p in Project.query.all())

    def test_owner_can_fork_own_public_project(self, public_project, alice):
        result = fork_engine.fork_project(public_project.id, alice.id)
        assert result.actor_handle == "alice"

    def test_fork_of_project_without_tags(self, alice, bob, make_project):
        source = make_project(alice.id, title="Bare", steps=1)
        result = fork_engine.fork_project(source.id, bob.id)
        assert ProjectTag.query.filter_by(project_id=result.id).count() == 0


class TestForkRejections:
    @pytest.mark.parametrize("published,approved", [(False, False), (True, False), (False, True)])
    def test_non_public_source_rejected(self, alice, bob, make_project, published, approved):
        source = make_project(alice.id, published=published, approved=approved)
        before = _project_count()

        with pytest.raises(NotFoundError) as exc_info:
            fork_engine.fork_project(source.id, bob.id)

        assert exc_info.value.code == "SourceNotAvailable"
        assert _project_count() == before

    def test_owner_cannot_fork_own_draft(self, alice, make_project):
        source = make_project(alice.id, published=False)
        with pytest.raises(NotFoundError):
            fork_engine.fork_project(source.id, alice.id)

    def test_missing_source(self, bob):
        with pytest.raises(NotFoundError) as exc_info:
            fork_engine.fork_project("does-not-exist", bob.id)
        assert exc_info.value.code == "SourceNotAvailable"

    def test_actor_without_profile(self, public_project):
        with pytest.raises(InternalError) as exc_info:
            fork_engine.fork_project(public_project.id, "ghost")
        assert exc_info.value.code == "ActorProfileMissing"

    def test_slug_exhaustion(self, public_project, bob, make_project):
        make_project(bob.id, title="Taken", slug=f"{public_project.slug}-aaaa", published=False)
        before = _project_count()

        with patch("stepwise.services.slug_service.random_suffix", return_value="aaaa"):
            with pytest.raises(ConflictError) as exc_info:
                fork_engine.fork_project(public_project.id, bob.id)

        assert exc_info.value.code == "SlugExhausted"
        assert _project_count() == before

    def test_slug_retry_finds_free_suffix(self, public_project, bob, make_project):
        make_project(bob.id, title="Taken", slug=f"{public_project.slug}-aaaa", published=False)
        with patch("stepwise.services.slug_service.random_suffix", side_effect=["aaaa", "aaaa", "bbbb"]):
            result = fork_engine.fork_project(public_project.id, bob.id)
        assert result.slug == f"{public_project.slug}-bbbb"


class TestForkCompensation:
    def test_step_copy_failure_removes_fork(self, public_project, bob):
        before = _project_count()
        steps_before = PromptStep.query.count()

        with patch(
            "stepwise.services.step_sequencer.copy_steps",
            side_effect=InternalError("Failed to save steps", code="StepInsertFailed"),
        ):
            with pytest.raises(InternalError):
                fork_engine.fork_project(public_project.id, bob.id)

        assert _project_count() == before
        assert PromptStep.query.count() == steps_before
        assert Project.query.filter_by(forked_from_id=public_project.id).count() == 0
        db.session.refresh(public_project)
        assert public_project.fork_count == 0

    def test_tag_copy_failure_removes_fork_and_copied_steps(self, public_project, bob):
        steps_before = PromptStep.query.count()

        with patch(
            "stepwise.services.fork_engine._copy_tags",
            side_effect=InternalError("Failed to copy tags", code="TagInsertFailed"),
        ):
            with pytest.raises(InternalError):
                fork_engine.fork_project(public_project.id, bob.id)

        assert Project.query.filter_by(forked_from_id=public_project.id).count() == 0
        assert PromptStep.query.count() == steps_before

    def test_counter_failure_keeps_fork(self, public_project, bob):
        with patch("stepwise.services.counter_sync.increment_forks", return_value=None):
            result = fork_engine.fork_project(public_project.id, bob.id)

        assert db.session.get(Project, result.id) is not None
        db.session.refresh(public_project)
        assert public_project.fork_count == 0
