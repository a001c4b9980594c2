# accounts/__init__.py
"""
Accounts app - identity for the recruitment platform.

This app provides:
- Company: Employer organization (owns jobs, scopes dashboards)
- User: Email-login user with a role (student, company staff, admin)
- ActorContext: Actor resolution for views, commands and consumers
- JWT websocket authentication for the dashboard channel
"""
