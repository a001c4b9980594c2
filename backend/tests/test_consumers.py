# tests/test_consumers.py
"""
Tests for the live dashboard websocket.

Consumers touch the database from a worker thread, so these tests need
transaction=True to see committed fixtures.
"""

import pytest
from uuid import uuid4

from asgiref.sync import async_to_sync
from channels.db import database_sync_to_async
from channels.routing import URLRouter
from channels.testing import WebsocketCommunicator
from django.utils import timezone

from accounts.serializers import tokens_for_user
from accounts.ws_auth import JWTAuthMiddleware
from analytics.broadcast import MESSAGE_TYPE, publish_aggregate
from analytics.consumers import can_join, parse_channel
from analytics.routing import websocket_urlpatterns
from events.recorder import record_event
from events.types import JobViewData, Metrics


def _application():
    return JWTAuthMiddleware(URLRouter(websocket_urlpatterns))


def _view(job):
    subject_id = str(job.public_id)
    return record_event(
        Metrics.JOB_VIEW,
        subject_id,
        company=job.company,
        data=JobViewData(job_public_id=subject_id),
    )


def _connect_path(user=None):
    if user is None:
        return "/ws/dashboard/"
    return f"/ws/dashboard/?token={tokens_for_user(user)['access']}"


# =============================================================================
# Channel rules
# =============================================================================

class TestParseChannel:

    def test_company_channel(self):
        assert parse_channel("company-12") == ("company", 12)

    def test_job_channel(self):
        job_id = uuid4()
        assert parse_channel(f"job-{job_id}") == ("job", job_id)

    @pytest.mark.parametrize("channel", ["company-abc", "job-42", "team-1", "company", "", None, 12])
    def test_malformed_channels(self, channel):
        assert parse_channel(channel) is None

    @pytest.mark.parametrize("channel", ["company-²", "company-١٢", "company-012"])
    def test_non_canonical_company_ids(self, channel):
        assert parse_channel(channel) is None

    def test_non_canonical_job_ids(self):
        job_id = uuid4()
        for ident in (f"{{{job_id}}}", str(job_id).upper(), job_id.hex, f"urn:uuid:{job_id}"):
            assert parse_channel(f"job-{ident}") is None


@pytest.mark.django_db
class TestCanJoin:

    def test_staff_can_join_own_company(self, staff_user, company):
        assert can_join(staff_user, f"company-{company.id}") is True

    def test_staff_cannot_join_other_company(self, staff_user, second_company):
        assert can_join(staff_user, f"company-{second_company.id}") is False

    def test_student_cannot_join_company(self, student, company):
        assert can_join(student, f"company-{company.id}") is False

    def test_admin_can_join_any_company(self, platform_admin, second_company):
        assert can_join(platform_admin, f"company-{second_company.id}") is True

    def test_anyone_can_join_active_job(self, job):
        from django.contrib.auth.models import AnonymousUser
        assert can_join(AnonymousUser(), f"job-{job.public_id}") is True

    def test_inactive_job_refused(self, job, student):
        job.is_active = False
        job.save()
        assert can_join(student, f"job-{job.public_id}") is False


# =============================================================================
# Websocket protocol
# =============================================================================

@pytest.mark.django_db(transaction=True)
class TestDashboardConsumer:

    def test_staff_join_gets_snapshot_then_updates(self, staff_user, job):
        _view(job)
        _view(job)
        channel = f"company-{job.company_id}"
        path = _connect_path(staff_user)

        async def scenario():
            communicator = WebsocketCommunicator(_application(), path)
            connected, _ = await communicator.connect()
            assert connected

            await communicator.send_json_to({"action": "join", "channel": channel})
            snapshot = await communicator.receive_json_from(timeout=2)

            await database_sync_to_async(publish_aggregate)(
                job.company_id, Metrics.JOB_VIEW, str(job.public_id), 3, timezone.now(),
            )
            update = await communicator.receive_json_from(timeout=2)

            await communicator.disconnect()
            return snapshot, update

        snapshot, update = async_to_sync(scenario)()

        assert snapshot["type"] == "snapshot"
        assert snapshot["channel"] == channel
        assert snapshot["aggregates"] == [
            {
                "metric": Metrics.JOB_VIEW,
                "subject_id": str(job.public_id),
                "value": 2,
                "as_of": snapshot["aggregates"][0]["as_of"],
            }
        ]
        assert update["type"] == MESSAGE_TYPE
        assert update["channel"] == channel
        assert update["value"] == 3

    def test_student_cannot_join_company_channel(self, student, company):
        channel = f"company-{company.id}"
        path = _connect_path(student)

        async def scenario():
            communicator = WebsocketCommunicator(_application(), path)
            await communicator.connect()
            await communicator.send_json_to({"action": "join", "channel": channel})
            response = await communicator.receive_json_from(timeout=2)
            await communicator.disconnect()
            return response

        response = async_to_sync(scenario)()

        assert response == {"type": "error", "code": "forbidden", "channel": channel}

    def test_bad_token_is_anonymous(self, company):
        channel = f"company-{company.id}"

        async def scenario():
            communicator = WebsocketCommunicator(_application(), "/ws/dashboard/?token=not-a-jwt")
            await communicator.connect()
            await communicator.send_json_to({"action": "join", "channel": channel})
            response = await communicator.receive_json_from(timeout=2)
            await communicator.disconnect()
            return response

        assert async_to_sync(scenario)()["code"] == "forbidden"

    def test_anonymous_job_watcher_and_leave(self, job):
        channel = f"job-{job.public_id}"

        async def scenario():
            communicator = WebsocketCommunicator(_application(), _connect_path())
            await communicator.connect()
            await communicator.send_json_to({"action": "join", "channel": channel})
            snapshot = await communicator.receive_json_from(timeout=2)
            await communicator.send_json_to({"action": "leave", "channel": channel})
            left = await communicator.receive_json_from(timeout=2)

            await database_sync_to_async(publish_aggregate)(
                job.company_id, Metrics.JOB_VIEW, str(job.public_id), 1, timezone.now(),
            )
            nothing = await communicator.receive_nothing(timeout=0.2)
            await communicator.disconnect()
            return snapshot, left, nothing

        snapshot, left, nothing = async_to_sync(scenario)()

        assert snapshot == {"type": "snapshot", "channel": channel, "aggregates": []}
        assert left == {"type": "left", "channel": channel}
        assert nothing is True

    def test_ping_and_unknown_action(self):
        async def scenario():
            communicator = WebsocketCommunicator(_application(), _connect_path())
            await communicator.connect()
            await communicator.send_json_to({"action": "ping"})
            pong = await communicator.receive_json_from(timeout=2)
            await communicator.send_json_to({"action": "subscribe"})
            error = await communicator.receive_json_from(timeout=2)
            await communicator.disconnect()
            return pong, error

        pong, error = async_to_sync(scenario)()

        assert pong == {"type": "pong"}
        assert error == {"type": "error", "code": "unknown_action", "action": "subscribe"}

    def test_braced_job_id_is_refused_and_socket_stays_open(self, job):
        braced = f"job-{{{job.public_id}}}"

        async def scenario():
            communicator = WebsocketCommunicator(_application(), _connect_path())
            await communicator.connect()
            await communicator.send_json_to({"action": "join", "channel": braced})
            refused = await communicator.receive_json_from(timeout=2)
            await communicator.send_json_to({"action": "ping"})
            pong = await communicator.receive_json_from(timeout=2)
            await communicator.disconnect()
            return refused, pong

        refused, pong = async_to_sync(scenario)()

        assert refused == {"type": "error", "code": "forbidden", "channel": braced}
        assert pong == {"type": "pong"}
