"""
Task subsystem.

Components:
- task_models.py: data structures (Project, Task, TaskStatus, TaskPriority)
- errors.py: error taxonomy with HTTP-equivalent status codes
- dependency_graph.py: pure dependency graph engine (cycles, completion gate, detachment)
- task_store.py: SQLite-backed storage for projects, tasks and edges
- task_service.py: existence checks + transactional engine calls
"""
