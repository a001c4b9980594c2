# analytics/consumers.py
"""
Websocket consumer for live dashboards.

Protocol (JSON frames):

    -> {"action": "join", "channel": "company-12"}
    <- {"type": "snapshot", "channel": "company-12", "aggregates": [...]}
    <- {"type": "aggregate.update", "channel": "company-12", "metric": ..., "subject_id": ..., "value": ..., "as_of": ...}
    -> {"action": "leave", "channel": "company-12"}
    <- {"type": "error", "code": "forbidden", "channel": "company-12"}

Company channels need a JWT (?token=...) belonging to that company's staff;
job channels are public. The snapshot on join lets a reconnecting client
catch up without replaying missed updates.
"""

import logging
import uuid

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.utils import timezone

from accounts.authz import actor_for_user
from accounts.models import Company
from analytics.broadcast import MESSAGE_TYPE, aggregate_message

logger = logging.getLogger(__name__)


def parse_channel(channel):
    """
    Split 'company-12' / 'job-<uuid>' into (kind, id); None if malformed.

    Only the canonical spelling is accepted (no leading zeros, lower-case
    hyphenated UUID), so a joined group always matches the group name the
    broadcaster sends to.
    """
    if not isinstance(channel, str) or "-" not in channel:
        return None
    kind, _, ident = channel.partition("-")
    if kind == "company" and ident.isascii() and ident.isdigit():
        if str(int(ident)) != ident:
            return None
        return kind, int(ident)
    if kind == "job":
        try:
            parsed = uuid.UUID(ident)
        except ValueError:
            return None
        if str(parsed) != ident:
            return None
        return kind, parsed
    return None


def can_join(user, channel) -> bool:
    parsed = parse_channel(channel)
    if parsed is None:
        return False
    kind, ident = parsed

    if kind == "job":
        from jobs.models import Job
        return Job.objects.filter(public_id=ident, is_active=True).exists()

    if not getattr(user, "is_authenticated", False):
        return False
    company = Company.objects.filter(pk=ident, is_active=True).first()
    return company is not None and actor_for_user(user).can_manage(company)


def snapshot_for(channel) -> list:
    """Current all-time values for everything a channel carries."""
    from analytics.models import Aggregate

    kind, ident = parse_channel(channel)
    qs = Aggregate.objects.all_time()
    if kind == "company":
        qs = qs.filter(company_id=ident)
    else:
        qs = qs.filter(subject_id=str(ident))

    now = timezone.now()
    return [
        aggregate_message(metric, subject_id, value, now)
        for metric, subject_id, value in qs.order_by("metric", "subject_id").values_list("metric", "subject_id", "value")
    ]


class DashboardConsumer(AsyncJsonWebsocketConsumer):
    async def connect(self):
        self.joined = set()
        await self.accept()

    async def disconnect(self, code):
        for group in self.joined:
            await self.channel_layer.group_discard(group, self.channel_name)
        self.joined = set()

    async def receive_json(self, content, **kwargs):
        action = content.get("action") if isinstance(content, dict) else None
        channel = content.get("channel") if isinstance(content, dict) else None

        if action == "join":
            await self.join(channel)
        elif action == "leave":
            await self.leave(channel)
        elif action == "ping":
            await self.send_json({"type": "pong"})
        else:
            await self.send_json({"type": "error", "code": "unknown_action", "action": action})

    async def join(self, channel):
        user = self.scope.get("user")
        if not await database_sync_to_async(can_join)(user, channel):
            logger.info(
                "Dashboard join refused",
                extra={"channel": channel, "user_id": getattr(user, "pk", None)},
            )
            await self.send_json({"type": "error", "code": "forbidden", "channel": channel})
            return

        await self.channel_layer.group_add(channel, self.channel_name)
        self.joined.add(channel)
        aggregates = await database_sync_to_async(snapshot_for)(channel)
        await self.send_json({"type": "snapshot", "channel": channel, "aggregates": aggregates})

    async def leave(self, channel):
        if channel in self.joined:
            await self.channel_layer.group_discard(channel, self.channel_name)
            self.joined.discard(channel)
        await self.send_json({"type": "left", "channel": channel})

    async def aggregate_update(self, event):
        await self.send_json({
            "type": MESSAGE_TYPE,
            "channel": event["channel"],
            "metric": event["metric"],
            "subject_id": event["subject_id"],
            "value": event["value"],
            "as_of": event["as_of"],
        })
