"""
Task subsystem.

Components:
- task_models.py: data structures (TaskDefinition, TaskInstance, TaskState, records)
- slot_tracker.py: band assignment on start/stop, restart reconciliation
"""
