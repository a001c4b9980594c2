# analytics/__init__.py
"""
Analytics app - aggregates over the event log and the live dashboard.

This app provides:
- Aggregate: Per (metric, subject, period) counter owned by the reconciler
- reconciler: bump (fast path) and recompute (repair from the event log)
- tasks: the periodic reconcile + broadcast tick and the nightly repair
- broadcast / consumers: the websocket push channel for dashboards
- reports: company, student and job dashboards
"""
