"""
External tracker integrations.

- models.py: Integration records, sync policy, transitions
- store.py: SQLite-backed integration records
- providers/: one adapter per tracker (status vocabulary + REST calls)
- status_sync.py: completion toggle -> local write + remote sync policy
"""
