"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, TaskFilter)
- task_store.py: SQLite-backed storage + query/update helpers
- task_views.py: view queries keyed by filter, refetched on invalidation
- task_mutator.py: bulk updates with completed_at derivation
- task_scheduler.py: polling loop that moves overdue in-progress tasks to today
"""
