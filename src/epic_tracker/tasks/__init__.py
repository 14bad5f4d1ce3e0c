"""
Task subsystem.

Components:
- task_models.py: data structures (Item, ItemKind, TaskStatus) and the overlap rule
- epic_status.py: epic status / time window derivation from subtasks
- time_index.py: start-time ordered index of time-bound items
- history.py: recency-ordered view history
- task_store.py: in-memory store (ids, CRUD, cascades)
- task_codec.py: flat-file line encode/decode
- file_store.py: store that rewrites its backing file after every mutation
"""
