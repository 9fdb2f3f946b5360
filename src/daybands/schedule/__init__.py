"""
Scheduling within one day.

Components:
- time_slots.py: the four fixed bands and time -> band classification
- order_keys.py: fractional order keys, starvation handling, key seeding
- ordering.py: display sort, drag placement and duplication
"""
