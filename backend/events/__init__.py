# events/__init__.py
"""
Events app - the append-only event log behind every platform counter.

This app provides:
- Event: Immutable record of a countable action (job view, application, ...)
- record_event: The only write path into the log (validate, dedup, store, bump)
- Metric definitions with CANONICAL PAYLOAD SCHEMAS (events/types.py)
- Error types shared with the analytics app (events/exceptions.py)

Usage:
    from events.recorder import dedup_key_for, record_event
    from events.types import JobViewData, Metrics

    record_event(
        Metrics.JOB_VIEW,
        job.public_id,
        company=job.company,
        actor=user,
        data=JobViewData(job_public_id=str(job.public_id), viewer_id=str(user.public_id)),
        dedup_key=dedup_key_for(Metrics.JOB_VIEW, job.public_id, user.public_id),
    )

Handling errors:
    try:
        record_event(...)
    except ValidationError as e:
        # e.code == "invalid_event", e.details explains what was wrong
        ...
"""
