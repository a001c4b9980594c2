# accounts/ws_auth.py
"""
JWT authentication for websocket connections.

Browsers cannot set an Authorization header on a websocket handshake,
so the dashboard client passes its SimpleJWT access token as
``?token=<access>``. The middleware puts the resolved user (or
AnonymousUser) in ``scope["user"]``.
"""

import logging
from urllib.parse import parse_qs

from channels.db import database_sync_to_async
from channels.middleware import BaseMiddleware
from django.contrib.auth.models import AnonymousUser
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from rest_framework_simplejwt.tokens import AccessToken

from accounts.models import User

logger = logging.getLogger(__name__)


@database_sync_to_async
def get_user_for_token(raw_token: str):
    try:
        token = AccessToken(raw_token)
    except TokenError as exc:
        logger.info("Rejected websocket token: %s", exc)
        return AnonymousUser()

    user_id = token.get(api_settings.USER_ID_CLAIM)
    try:
        user = User.objects.select_related("company").get(**{api_settings.USER_ID_FIELD: user_id})
    except User.DoesNotExist:
        return AnonymousUser()
    return user if user.is_active else AnonymousUser()


class JWTAuthMiddleware(BaseMiddleware):
    async def __call__(self, scope, receive, send):
        query = parse_qs(scope.get("query_string", b"").decode())
        raw_token = (query.get("token") or [None])[0]

        scope = dict(scope)
        scope["user"] = await get_user_for_token(raw_token) if raw_token else AnonymousUser()
        return await super().__call__(scope, receive, send)
