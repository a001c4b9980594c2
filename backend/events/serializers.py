# events/serializers.py
"""
Serializers for the event log API (read-only).
"""

from rest_framework import serializers

from events.models import Event


class EventListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for event listing."""

    actor_email = serializers.CharField(
        source='actor.email',
        read_only=True,
        default=None,
    )

    class Meta:
        model = Event
        fields = [
            'id',
            'metric',
            'subject_type',
            'subject_id',
            'actor_email',
            'occurred_at',
            'recorded_at',
        ]


class EventDetailSerializer(serializers.ModelSerializer):
    """Full serializer for single event detail."""

    actor_email = serializers.CharField(
        source='actor.email',
        read_only=True,
        default=None,
    )
    company_public_id = serializers.UUIDField(source='company.public_id', read_only=True)

    class Meta:
        model = Event
        fields = [
            'id',
            'company_public_id',
            'metric',
            'subject_type',
            'subject_id',
            'actor_email',
            'data',
            'metadata',
            'dedup_key',
            'schema_version',
            'occurred_at',
            'recorded_at',
        ]
