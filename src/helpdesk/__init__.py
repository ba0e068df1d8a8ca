"""
Helpdesk Tickets
================

Support ticket service: optimistic concurrency on updates, SLA deadlines
and breach tracking, an append-only audit trail, and idempotent creation.
"""

__version__ = "1.0.0"
