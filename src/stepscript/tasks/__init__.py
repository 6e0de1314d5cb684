"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskStatus, TaskState)
- task_store.py: reducer + in-memory store that serializes every transition
- task_handle.py: single-registration wrapper used by operations
- task_api.py: read-only helpers for summaries and status views
"""
