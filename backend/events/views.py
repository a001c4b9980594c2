# events/views.py
"""
Event log API views.

Company staff read their own company's events; platform admins may read
any company's by passing ?company=<public_id>.
"""

from django.utils.dateparse import parse_datetime
from rest_framework import generics
from rest_framework.permissions import IsAuthenticated

from accounts.authz import resolve_actor
from accounts.models import Company
from events.exceptions import ValidationError
from events.models import Event
from events.serializers import EventDetailSerializer, EventListSerializer
from events.types import parse_public_id, validate_metric


def _parse_timestamp(name, value):
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValidationError(f"'{name}' must be an ISO 8601 datetime.", details={name: value})
    return parsed


class CompanyEventsMixin:
    def get_company(self):
        actor = resolve_actor(self.request)
        if actor.is_admin:
            company_id = self.request.query_params.get('company')
            if company_id:
                return generics.get_object_or_404(Company, public_id=parse_public_id(company_id, 'company'))
            return None
        return actor.require_company()

    def base_queryset(self):
        company = self.get_company()
        qs = Event.objects.select_related('actor', 'company')
        if company is not None:
            qs = qs.filter(company=company)
        return qs


class EventListView(CompanyEventsMixin, generics.ListAPIView):
    """
    List events for the current company.

    GET /api/events/

    Supports filtering by:
    - metric: Filter by metric (exact match)
    - subject_id: Filter by subject id
    - occurred_at__gte: Events at or after this timestamp
    - occurred_at__lte: Events at or before this timestamp
    """

    serializer_class = EventListSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = self.base_queryset().order_by('-recorded_at')
        params = self.request.query_params

        metric = params.get('metric')
        if metric:
            validate_metric(metric)
            qs = qs.filter(metric=metric)

        subject_id = params.get('subject_id')
        if subject_id:
            qs = qs.filter(subject_id=subject_id)

        occurred_after = params.get('occurred_at__gte')
        if occurred_after:
            qs = qs.filter(occurred_at__gte=_parse_timestamp('occurred_at__gte', occurred_after))

        occurred_before = params.get('occurred_at__lte')
        if occurred_before:
            qs = qs.filter(occurred_at__lte=_parse_timestamp('occurred_at__lte', occurred_before))

        return qs[:1000]  # Limit for safety


class EventDetailView(CompanyEventsMixin, generics.RetrieveAPIView):
    """
    Get a single event.

    GET /api/events/<id>/
    """

    serializer_class = EventDetailSerializer
    permission_classes = [IsAuthenticated]
    lookup_field = 'id'

    def get_queryset(self):
        return self.base_queryset()
