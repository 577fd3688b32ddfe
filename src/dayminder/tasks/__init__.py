"""
Task subsystem.

Components:
- task_models.py: data structures (Task, Tag, drafts, reminders)
- recurrence.py: next-occurrence resolution and day queries
- ledger.py: per-day completion toggles
- capability.py: free/premium limits
- reminders.py: reminder instants for a task's next occurrence
- repository.py: in-memory collections + persistence + reminder wiring
- task_scheduler.py: in-process reminder scheduler and delivery loop
"""
