"""Routine recurrence rules and rename history."""
