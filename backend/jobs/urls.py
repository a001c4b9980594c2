from django.urls import path

from jobs.views import (
    CompanyViewTrackView,
    JobApplyView,
    JobDetailView,
    JobListView,
    JobSaveView,
    JobViewTrackView,
    MyApplicationsView,
    ScheduleInterviewView,
)

urlpatterns = [
    path("jobs/", JobListView.as_view(), name="job-list"),
    path("jobs/applications/mine/", MyApplicationsView.as_view(), name="application-mine"),
    path(
        "jobs/applications/<uuid:public_id>/interview/",
        ScheduleInterviewView.as_view(),
        name="application-interview",
    ),
    path("jobs/<uuid:public_id>/", JobDetailView.as_view(), name="job-detail"),
    path("jobs/<uuid:public_id>/view/", JobViewTrackView.as_view(), name="job-view"),
    path("jobs/<uuid:public_id>/apply/", JobApplyView.as_view(), name="job-apply"),
    path("jobs/<uuid:public_id>/save/", JobSaveView.as_view(), name="job-save"),
    path("companies/<uuid:public_id>/view/", CompanyViewTrackView.as_view(), name="company-view"),
]
