"""
Auto-Close Engine

Rule-driven ticket closure for the helpdesk:
- Time-window rules (status, pending, no response)
- Mandatory status transition, best-effort notes and notifications
- Dry-run preview before a real sweep
- Hourly scheduled sweep + manual "Run Now"
"""

__version__ = "0.1.0"
