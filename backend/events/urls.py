# events/urls.py
"""
URL configuration for the event log API.
"""

from django.urls import path

from events.views import EventDetailView, EventListView


app_name = "events"

urlpatterns = [
    path("", EventListView.as_view(), name="event-list"),
    path("<uuid:id>/", EventDetailView.as_view(), name="event-detail"),
]
