"""
Shared pytest fixtures for the Stepwise test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_profile / make_project: row factories
    - alice / bob: two ready-made profiles
    - public_project: published + approved project by alice with 3 steps, 2 tags
    - as_actor: request headers identifying an actor
"""

import pytest

from stepwise import create_app
from stepwise.models import db as _db
from stepwise.models.profile import Profile
from stepwise.models.project import Project, ProjectTag
from stepwise.models.step import PromptStep


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_profile():
    def _make(profile_id: str, username: str | None = None) -> Profile:
        profile = Profile(id=profile_id, username=username or profile_id)
        _db.session.add(profile)
        _db.session.commit()
        return profile

    return _make


@pytest.fixture()
def make_project():
    def _make(
        author_id: str,
        *,
        title: str = "Landing Page Workflow",
        slug: str | None = None,
        published: bool = True,
        approved: bool | None = None,
        steps: int = 3,
        tags: tuple = (),
        **fields,
    ) -> Project:
        project = Project(
            author_id=author_id,
            title=title,
            slug=slug or title.lower().replace(" ", "-"),
            tool=fields.pop("tool", "cursor"),
            category=fields.pop("category", "landing-page"),
            is_published=published,
            is_approved=published if approved is None else approved,
            **fields,
        )
        _db.session.add(project)
        _db.session.flush()
        for i in range(1, steps + 1):
            _db.session.add(PromptStep(
                project_id=project.id,
                step_order=i,
                title=f"Step {i}",
                prompt_text=f"Prompt {i}",
                context_mode="composer",
                output_notes=f"Output {i}",
                tips=f"Tip {i}" if i % 2 else None,
                fork_note=f"Note {i}",
            ))
        for name in tags:
            _db.session.add(ProjectTag(project_id=project.id, tag_name=name))
        _db.session.commit()
        return project

    return _make


@pytest.fixture()
def alice(make_profile):
    return make_profile("user-alice", "alice")


@pytest.fixture()
def bob(make_profile):
    return make_profile("user-bob", "bob")


@pytest.fixture()
def public_project(alice, make_project):
    return make_project(alice.id, tags=("nextjs", "tailwind"))


@pytest.fixture()
def as_actor():
    """Headers for the test client; the testing config trusts X-Actor-Id."""
    def _headers(actor_id: str) -> dict:
        return {"X-Actor-Id": actor_id}

    return _headers
