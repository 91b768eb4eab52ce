"""HTTP tests for the project blueprint.

Coverage:
  1. create: slug derivation, collision suffix, auto-approve, validation 422
  2. update / delete / append: owner only (403), missing (404), actor required (401)
  3. detail visibility: drafts visible to owner only
  4. fork endpoint: 201 shape, draft source 404, projectId required
  5. bearer token identity
"""

from unittest.mock import patch

import pytest

from stepwise.core.exceptions import InternalError
from stepwise.models import db
from stepwise.models.project import Project, ProjectTag
from stepwise.models.step import PromptStep
from stepwise.services.token_service import generate_access_token


def _payload(**overrides):
    body = {
        "title": "My Cool Dashboard!",
        "description": "Built in an afternoon",
        "tool": "cursor",
        "category": "dashboard",
        "difficulty": "beginner",
        "demo_url": "",
        "tags": ["react", "charts"],
        "is_published": True,
        "steps": [
            {"step_order": 9, "title": "Scaffold", "prompt_text": "create app", "context_mode": "composer"},
            {"step_order": 9, "title": "Charts", "prompt_text": "add charts", "context_mode": "bogus"},
        ],
    }
    body.update(overrides)
    return body


def _steps(project_id):
    return PromptStep.query.filter_by(project_id=project_id).order_by(PromptStep.step_order).all()


class TestCreate:
    def test_create_project(self, client, alice, as_actor):
        res = client.post("/api/v1/projects", json=_payload(), headers=as_actor(alice.id))

        assert res.status_code == 201
        data = res.get_json()
        assert data["slug"] == "my-cool-dashboard"
        assert data["authorUsername"] == "alice"

        project = db.session.get(Project, data["id"])
        assert project.is_published and project.is_approved
        assert project.import_method == "session_export"
        steps = _steps(project.id)
        assert [(s.step_order, s.title) for s in steps] == [(1, "Scaffold"), (2, "Charts")]
        assert steps[1].context_mode is None
        assert sorted(t.tag_name for t in project.tags) == ["charts", "react"]

    def test_draft_is_not_approved(self, client, alice, as_actor):
        res = client.post("/api/v1/projects", json=_payload(is_published=False), headers=as_actor(alice.id))
        project = db.session.get(Project, res.get_json()["id"])
        assert project.is_approved is False

    def test_slug_collision_gets_suffix(self, client, alice, as_actor):
        first = client.post("/api/v1/projects", json=_payload(), headers=as_actor(alice.id)).get_json()
        second = client.post("/api/v1/projects", json=_payload(), headers=as_actor(alice.id)).get_json()

        assert first["slug"] == "my-cool-dashboard"
        assert second["slug"].startswith("my-cool-dashboard-")
        assert len(second["slug"]) == len("my-cool-dashboard-") + 4

    def test_symbol_only_title_falls_back(self, client, alice, as_actor):
        res = client.post("/api/v1/projects", json=_payload(title="!!!"), headers=as_actor(alice.id))
        assert res.get_json()["slug"] == "project"

    def test_slug_exhausted_is_409(self, client, alice, as_actor, make_project):
        make_project(alice.id, title="Dup", slug="dup")
        make_project(alice.id, title="Dup2", slug="dup-zzzz")
        with patch("stepwise.services.slug_service.random_suffix", return_value="zzzz"):
            res = client.post("/api/v1/projects", json=_payload(title="Dup"), headers=as_actor(alice.id))
        assert res.status_code == 409
        assert res.get_json()["details"]["code"] == "SlugExhausted"

    def test_validation_errors_name_fields(self, client, alice, as_actor):
        body = _payload(title="", tool="vim", steps=[{"title": ""}], tags=["x" * 51])
        res = client.post("/api/v1/projects", json=body, headers=as_actor(alice.id))

        assert res.status_code == 422
        details = res.get_json()["details"]
        assert {"title", "tool", "steps.0.title", "tags.0"} <= set(details)
        assert Project.query.count() == 0

    def test_no_steps_rejected(self, client, alice, as_actor):
        res = client.post("/api/v1/projects", json=_payload(steps=[]), headers=as_actor(alice.id))
        assert res.status_code == 422
        assert "steps" in res.get_json()["details"]

    def test_too_many_tags(self, client, alice, as_actor):
        tags = [f"t{i}" for i in range(11)]
        res = client.post("/api/v1/projects", json=_payload(tags=tags), headers=as_actor(alice.id))
        assert res.status_code == 422

    def test_requires_actor(self, client):
        res = client.post("/api/v1/projects", json=_payload())
        assert res.status_code == 401

    def test_step_failure_removes_project(self, client, alice, as_actor):
        with patch(
            "stepwise.services.step_sequencer.insert_steps",
            side_effect=InternalError("Failed to save steps", code="StepInsertFailed"),
        ):
            res = client.post("/api/v1/projects", json=_payload(), headers=as_actor(alice.id))

        assert res.status_code == 500
        assert res.get_json()["details"]["code"] == "StepInsertFailed"
        assert Project.query.count() == 0

    def test_tag_failure_keeps_project(self, client, alice, as_actor):
        with patch(
            "stepwise.services.project_service._insert_tags",
            side_effect=InternalError("Failed to save tags", code="TagInsertFailed"),
        ):
            res = client.post("/api/v1/projects", json=_payload(), headers=as_actor(alice.id))

        assert res.status_code == 201
        project_id = res.get_json()["id"]
        assert len(_steps(project_id)) == 2
        assert ProjectTag.query.filter_by(project_id=project_id).count() == 0


class TestUpdateDelete:
    def test_owner_updates_everything_but_slug(self, client, alice, as_actor, public_project):
        body = _payload(title="Renamed", tags=["solo"], steps=[{"title": "Only step", "prompt_text": ""}])
        res = client.put(f"/api/v1/projects/{public_project.id}", json=body, headers=as_actor(alice.id))

        assert res.status_code == 200
        assert res.get_json()["slug"] == public_project.slug
        db.session.refresh(public_project)
        assert public_project.title == "Renamed"
        assert [s.title for s in _steps(public_project.id)] == ["Only step"]
        assert [t.tag_name for t in public_project.tags] == ["solo"]

    def test_unpublish_revokes_approval(self, client, alice, as_actor, public_project):
        client.put(
            f"/api/v1/projects/{public_project.id}",
            json=_payload(is_published=False),
            headers=as_actor(alice.id),
        )
        db.session.refresh(public_project)
        assert public_project.is_approved is False

    def test_non_owner_cannot_update(self, client, bob, as_actor, public_project):
        res = client.put(f"/api/v1/projects/{public_project.id}", json=_payload(), headers=as_actor(bob.id))
        assert res.status_code == 403

    def test_update_missing_project(self, client, alice, as_actor):
        res = client.put("/api/v1/projects/nope", json=_payload(), headers=as_actor(alice.id))
        assert res.status_code == 404

    def test_delete_cascades_and_orphans_forks(self, client, alice, bob, as_actor, public_project):
        fork = client.post(
            "/api/v1/projects/fork", json={"projectId": public_project.id}, headers=as_actor(bob.id)
        ).get_json()
        client.post("/api/v1/stars", json={"projectId": public_project.id}, headers=as_actor(bob.id))
        client.post(
            "/api/v1/comments",
            json={"projectId": public_project.id, "body": "hi"},
            headers=as_actor(bob.id),
        )
        source_id = public_project.id

        res = client.delete(f"/api/v1/projects/{source_id}", headers=as_actor(alice.id))

        assert res.status_code == 200
        assert db.session.get(Project, source_id) is None
        assert PromptStep.query.filter_by(project_id=source_id).count() == 0
        forked = db.session.get(Project, fork["id"])
        db.session.refresh(forked)
        assert forked.forked_from_id is None
        assert forked.inspired_by_id is None
        assert len(_steps(forked.id)) == 3

    def test_non_owner_cannot_delete(self, client, bob, as_actor, public_project):
        res = client.delete(f"/api/v1/projects/{public_project.id}", headers=as_actor(bob.id))
        assert res.status_code == 403
        assert db.session.get(Project, public_project.id) is not None


class TestAppendSteps:
    def _records(self):
        return [
            {"title": "Add auth", "prompt_text": "add login", "context_mode": "chat",
             "output_summary": "login page", "tips": ""},
            {"title": "Add tests", "prompt_text": "write tests", "context_mode": "chat",
             "output_summary": ""},
        ]

    def test_append_numbers_after_existing(self, client, alice, as_actor, public_project):
        res = client.post(
            f"/api/v1/projects/{public_project.id}/append-steps",
            json={"steps": self._records()},
            headers=as_actor(alice.id),
        )

        assert res.status_code == 200
        assert res.get_json() == {"success": True, "totalSteps": 5}
        steps = _steps(public_project.id)
        assert [s.step_order for s in steps] == [1, 2, 3, 4, 5]
        assert steps[3].output_notes == "login page"
        assert steps[3].tips is None
        assert steps[4].output_notes is None

    def test_append_requires_owner(self, client, bob, as_actor, public_project):
        res = client.post(
            f"/api/v1/projects/{public_project.id}/append-steps",
            json={"steps": self._records()},
            headers=as_actor(bob.id),
        )
        assert res.status_code == 403

    def test_append_invalid_record(self, client, alice, as_actor, public_project):
        records = self._records()
        records[1]["title"] = ""
        res = client.post(
            f"/api/v1/projects/{public_project.id}/append-steps",
            json={"steps": records},
            headers=as_actor(alice.id),
        )
        assert res.status_code == 422
        assert "1.title" in res.get_json()["details"]
        assert len(_steps(public_project.id)) == 3

    def test_append_missing_steps_key(self, client, alice, as_actor, public_project):
        res = client.post(
            f"/api/v1/projects/{public_project.id}/append-steps",
            json={},
            headers=as_actor(alice.id),
        )
        assert res.status_code == 400

    def test_append_missing_project(self, client, alice, as_actor):
        res = client.post(
            "/api/v1/projects/nope/append-steps",
            json={"steps": self._records()},
            headers=as_actor(alice.id),
        )
        assert res.status_code == 404


class TestReads:
    def test_public_detail(self, client, public_project):
        res = client.get(f"/api/v1/users/alice/projects/{public_project.slug}")
        assert res.status_code == 200
        data = res.get_json()
        assert [s["step_order"] for s in data["steps"]] == [1, 2, 3]
        assert data["tags"] == ["nextjs", "tailwind"]
        assert data["author"]["username"] == "alice"
        assert data["forked_from"] is None
        assert data["viewer_starred"] is False

    def test_detail_reports_viewer_star(self, client, bob, as_actor, public_project):
        client.post("/api/v1/stars", json={"projectId": public_project.id}, headers=as_actor(bob.id))
        url = f"/api/v1/users/alice/projects/{public_project.slug}"

        assert client.get(url, headers=as_actor(bob.id)).get_json()["viewer_starred"] is True
        assert client.get(url).get_json()["viewer_starred"] is False

    @pytest.mark.parametrize("published,approved", [(False, False), (True, False)])
    def test_hidden_project_visible_to_owner_only(
        self, client, alice, bob, as_actor, make_project, published, approved
    ):
        project = make_project(alice.id, title="Secret", published=published, approved=approved)
        url = f"/api/v1/users/alice/projects/{project.slug}"

        assert client.get(url).status_code == 404
        assert client.get(url, headers=as_actor(bob.id)).status_code == 404
        assert client.get(url, headers=as_actor(alice.id)).status_code == 200

    def test_detail_of_fork_has_lineage(self, client, bob, as_actor, public_project):
        fork = client.post(
            "/api/v1/projects/fork", json={"projectId": public_project.id}, headers=as_actor(bob.id)
        ).get_json()
        res = client.get(f"/api/v1/users/bob/projects/{fork['slug']}", headers=as_actor(bob.id))
        data = res.get_json()
        assert data["forked_from"] == {
            "title": public_project.title,
            "slug": public_project.slug,
            "author_username": "alice",
        }
        assert data["inspired_by"] == data["forked_from"]

    def test_wrong_username(self, client, public_project):
        assert client.get(f"/api/v1/users/bob/projects/{public_project.slug}").status_code == 404

    def test_my_projects(self, client, alice, bob, as_actor, make_project):
        make_project(alice.id, title="Older", steps=2)
        newer = make_project(alice.id, title="Newer", steps=4, published=False)
        make_project(bob.id, title="Not Mine")
        newer.description = "touched"
        db.session.commit()

        res = client.get("/api/v1/projects/mine", headers=as_actor(alice.id))

        projects = res.get_json()["projects"]
        assert [p["title"] for p in projects] == ["Newer", "Older"]
        assert [p["step_count"] for p in projects] == [4, 2]


class TestFork:
    def test_fork_endpoint(self, client, bob, as_actor, public_project):
        res = client.post("/api/v1/projects/fork", json={"projectId": public_project.id}, headers=as_actor(bob.id))
        assert res.status_code == 201
        data = res.get_json()
        assert set(data) == {"id", "slug", "actorHandle"}
        assert data["actorHandle"] == "bob"

    def test_fork_draft_is_404(self, client, alice, bob, as_actor, make_project):
        draft = make_project(alice.id, title="Draft", published=False)
        res = client.post("/api/v1/projects/fork", json={"projectId": draft.id}, headers=as_actor(bob.id))
        assert res.status_code == 404
        assert res.get_json()["details"]["code"] == "SourceNotAvailable"

    def test_fork_requires_project_id(self, client, bob, as_actor):
        res = client.post("/api/v1/projects/fork", json={}, headers=as_actor(bob.id))
        assert res.status_code == 400

    def test_fork_requires_actor(self, client, public_project):
        res = client.post("/api/v1/projects/fork", json={"projectId": public_project.id})
        assert res.status_code == 401

    def test_fork_without_profile_is_500(self, client, as_actor, public_project):
        res = client.post("/api/v1/projects/fork", json={"projectId": public_project.id}, headers=as_actor("ghost"))
        assert res.status_code == 500
        assert res.get_json()["details"]["code"] == "ActorProfileMissing"


class TestBearerIdentity:
    def test_bearer_token_identifies_actor(self, client, bob, public_project):
        token = generate_access_token(bob.id)
        res = client.post(
            "/api/v1/projects/fork",
            json={"projectId": public_project.id},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert res.status_code == 201
        assert res.get_json()["actorHandle"] == "bob"

    def test_invalid_token_is_unauthenticated(self, client, bob, public_project):
        res = client.post(
            "/api/v1/projects/fork",
            json={"projectId": public_project.id},
            headers={"Authorization": "Bearer not-a-jwt", "X-Actor-Id": bob.id},
        )
        assert res.status_code == 401

    def test_expired_token(self, client, bob, public_project):
        token = generate_access_token(bob.id, expires_in=-10)
        res = client.post(
            "/api/v1/projects/fork",
            json={"projectId": public_project.id},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert res.status_code == 401
