"""
Tickets Module
==============

Bounded context for support tickets.

Responsibilities:
- File tickets and stamp their SLA deadline
- Apply version-checked updates
- Keep comment threads and the append-only audit trail
- Decide who may read, modify and assign a ticket
"""

__version__ = "1.0.0"
