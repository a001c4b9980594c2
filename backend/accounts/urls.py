# accounts/urls.py
"""
URL configuration for auth API.

Endpoints:
- /auth/login/   - Email + password -> access/refresh JWT pair
- /auth/refresh/ - Refresh token rotation
- /auth/me/      - Current user
"""

from django.urls import path

from .views import LoginView, MeView, RefreshView

urlpatterns = [
    path("auth/login/", LoginView.as_view(), name="auth-login"),
    path("auth/refresh/", RefreshView.as_view(), name="auth-refresh"),
    path("auth/me/", MeView.as_view(), name="auth-me"),
]
