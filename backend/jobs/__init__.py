# jobs/__init__.py
"""
Jobs app - the subjects the analytics counters are about.

Provides Job, Application, Interview and SavedJob, plus the commands
(jobs/commands.py) that change them and record the matching events.
"""
