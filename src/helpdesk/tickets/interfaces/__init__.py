"""
Tickets Interfaces Layer
========================

Interface adapters (controllers) for the tickets module.

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from helpdesk.tickets.interfaces.controllers import get_ticket_service, tickets_router

__all__ = ["get_ticket_service", "tickets_router"]
