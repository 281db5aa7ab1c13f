"""
Auto planning.

- models.py: request/response contract with the planning service
- capacity.py: planning window and available-day pre-filter
- auto_planner.py: plan/apply/rollback state machine
- service.py: HTTP and LLM-backed planning services
- offline.py: deterministic fallback planner
"""
