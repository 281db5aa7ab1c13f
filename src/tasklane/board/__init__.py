"""
Board: calendar/backlog/kanban containers.

- columns.py: pure drop resolution (container tokens -> task updates)
- drag_engine.py: per-container ordered lists with optimistic updates
"""
