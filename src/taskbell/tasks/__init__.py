"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Priority) + timestamp helpers
- task_store.py: SQLite-backed storage + query/update helpers
- task_api.py: small high-level helpers used by the console client
"""
