"""
SLA Monitoring Module
=====================

Bounded context for service level agreement tracking.

Responsibilities:
- Map ticket priority to an allowed resolution time
- Flag tickets whose deadline passed while unresolved (monotonic)
- Run the periodic breach sweep independent of request traffic
- Announce breaches via Slack
"""

__version__ = "1.0.0"
