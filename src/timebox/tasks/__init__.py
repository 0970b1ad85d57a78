"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, TaskSettings, TimePeriod, ...)
- task_store.py: SQLite-backed record store (tasks, settings, time periods)
- periods.py: time-period overlap validation + period management
- windows.py: creation window resolution + deadline calculation/validation
- timeutil.py: derived buffer state and display helpers
- lifecycle.py: task state machine (create/edit/complete/expire/delete/reactivate)
- task_sweeper.py: expiration sweep + polling loop
- stats.py: completion statistics over date ranges
"""
