"""
tasklane: task scheduling and cross-view synchronization engine.

Subpackages:
- tasks: Task model, SQLite TaskStore, bulk mutator, view queries, overdue rescheduler
- board: drop resolution and the drag/reorder engine
- planning: capacity pre-filter, auto planner and planning services
- integrations: provider adapters and completion status sync
- cli: console entry point and slash commands
"""

__version__ = "0.3.0"
