from django.urls import path

from analytics.views import (
    CompanyDailyView,
    CompanyPerformanceView,
    DashboardStatsView,
    JobStatsView,
    PersonalSummaryView,
    ReconcileView,
    TrackView,
)

app_name = "analytics"

urlpatterns = [
    path("company/performance/", CompanyPerformanceView.as_view(), name="company-performance"),
    path("company/daily/", CompanyDailyView.as_view(), name="company-daily"),
    path("personal/", PersonalSummaryView.as_view(), name="personal"),
    path("jobs/<uuid:public_id>/stats/", JobStatsView.as_view(), name="job-stats"),
    path("dashboard-stats/", DashboardStatsView.as_view(), name="dashboard-stats"),
    path("track/", TrackView.as_view(), name="track"),
    path("admin/reconcile/", ReconcileView.as_view(), name="reconcile"),
]
