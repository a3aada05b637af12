"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from fakes import FakeGitHub, FakeSummarizer
from repolens.db.connection import Database
from repolens.db.models import Project
from repolens.db.repository import Repository
from repolens.db.vectors import ensure_vec_table, model_to_slug


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    conn = Database(tmp_path / ".repolens.db").open()
    yield conn
    conn.close()


@pytest.fixture
def repo(tmp_db):
    return Repository(tmp_db)


@pytest.fixture
def project(repo):
    p = Project(id="proj-1", name="hello", github_url="https://github.com/octocat/hello")
    repo.add_project(p)
    return p


@pytest.fixture
def vec_table(tmp_db):
    """Three-dimensional vec table, small enough to assert on."""
    return ensure_vec_table(tmp_db, model_to_slug("openai/text-embedding-3-small"), dimensions=3)


@pytest.fixture
def summarizer():
    return FakeSummarizer(dimensions=3)


@pytest.fixture
def github():
    return FakeGitHub()
