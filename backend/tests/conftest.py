# tests/conftest.py
"""
Pytest fixtures for the recruitment analytics tests.

- Companies, company staff, students and a platform admin
- A published job and an application
- API clients authenticated as each role
- In-process cache and channel layer, reset for every test
"""

import pytest
from uuid import uuid4

from django.contrib.auth import get_user_model
from django.core.cache import cache

from accounts.authz import actor_for_user
from accounts.models import Company
from jobs.models import Application, Job


User = get_user_model()


@pytest.fixture(autouse=True)
def _in_process_backends(settings):
    """Keep the tick lock and the dashboard channel layer inside the test process."""
    settings.CACHES = {
        "default": {"BACKEND": "django.core.cache.backends.locmem.LocMemCache"},
    }
    settings.CHANNEL_LAYERS = {
        "default": {"BACKEND": "channels.layers.InMemoryChannelLayer"},
    }
    cache.clear()
    yield
    cache.clear()


# =============================================================================
# Company & User Fixtures
# =============================================================================

@pytest.fixture
def company(db):
    """Create a test company."""
    return Company.objects.create(
        public_id=uuid4(),
        name="Test Company",
        slug="test-company",
        is_active=True,
    )


@pytest.fixture
def second_company(db):
    """Create a second company for scoping tests."""
    return Company.objects.create(
        public_id=uuid4(),
        name="Second Company",
        slug="second-company",
        is_active=True,
    )


@pytest.fixture
def staff_user(db, company):
    """Create a recruiter working for ``company``."""
    user = User.objects.create_user(
        email="recruiter@test.com",
        password="testpass123",
        name="Test Recruiter",
        role=User.Role.COMPANY,
        company=company,
    )
    company.owner = user
    company.save(update_fields=["owner"])
    return user


@pytest.fixture
def other_staff_user(db, second_company):
    """Create a recruiter working for ``second_company``."""
    return User.objects.create_user(
        email="other-recruiter@test.com",
        password="testpass123",
        name="Other Recruiter",
        role=User.Role.COMPANY,
        company=second_company,
    )


@pytest.fixture
def student(db):
    """Create a student."""
    return User.objects.create_user(
        email="student@test.com",
        password="testpass123",
        name="Test Student",
        role=User.Role.STUDENT,
    )


@pytest.fixture
def second_student(db):
    """Create another student."""
    return User.objects.create_user(
        email="student2@test.com",
        password="testpass123",
        name="Second Student",
        role=User.Role.STUDENT,
    )


@pytest.fixture
def platform_admin(db):
    """Create a platform administrator."""
    return User.objects.create_user(
        email="admin@test.com",
        password="testpass123",
        name="Test Admin",
        role=User.Role.ADMIN,
    )


# =============================================================================
# Actor Context Fixtures
# =============================================================================

@pytest.fixture
def staff_actor(staff_user):
    return actor_for_user(staff_user)


@pytest.fixture
def student_actor(student):
    return actor_for_user(student)


@pytest.fixture
def second_student_actor(second_student):
    return actor_for_user(second_student)


# =============================================================================
# Job Fixtures
# =============================================================================

@pytest.fixture
def job(db, company):
    """Create a published job."""
    return Job.objects.create(
        company=company,
        title="Backend Intern",
        description="Work on the API.",
        location="Remote",
        status=Job.Status.PUBLISHED,
    )


@pytest.fixture
def closed_job(db, company):
    """Create a job that no longer accepts applications."""
    return Job.objects.create(
        company=company,
        title="Closed Role",
        status=Job.Status.CLOSED,
    )


@pytest.fixture
def other_job(db, second_company):
    """Create a job at the second company."""
    return Job.objects.create(
        company=second_company,
        title="Data Intern",
        status=Job.Status.PUBLISHED,
    )


@pytest.fixture
def application(db, job, student):
    """Create an application without going through the command layer."""
    return Application.objects.create(job=job, student=student)


# =============================================================================
# API Client Fixtures
# =============================================================================

@pytest.fixture
def api_client():
    """Create a DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def staff_client(api_client, staff_user):
    api_client.force_authenticate(user=staff_user)
    return api_client


@pytest.fixture
def student_client(api_client, student):
    api_client.force_authenticate(user=student)
    return api_client


@pytest.fixture
def platform_admin_client(api_client, platform_admin):
    api_client.force_authenticate(user=platform_admin)
    return api_client
