"""
Core plumbing shared by every subsystem.

- errors.py: error taxonomy
- ports.py: Protocols the engine depends on
- state.py: ViewContext and AppState
- prefs.py: persisted per-view UI preferences
"""
