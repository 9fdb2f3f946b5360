"""
Day-band task tracking.

Subpackages:
- schedule: time bands, order keys and display ordering
- tasks: data model and slot tracking while tasks run
- routine: recurrence rules and rename (alias) history
- storage: JSON/SQLite stores used by the host
- core: ports, clock and the per-day view
"""

__version__ = "0.1.0"
