"""Fixtures for F4 tests - HTTP API."""

import pytest
from fastapi.testclient import TestClient

from examadmin.web.api import create_app


@pytest.fixture
def client(db):
    """Test client over a fresh database."""
    return TestClient(create_app())


@pytest.fixture
def as_admin(admin, headers_for):
    return headers_for(admin)


@pytest.fixture
def as_teacher(teacher, headers_for):
    return headers_for(teacher)


@pytest.fixture
def as_student(student, headers_for):
    return headers_for(student)
