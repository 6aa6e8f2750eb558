"""
Events Module

Course events that applicants submit against.

API Endpoints:
- GET /events - List events (public)
- GET /events/{id} - Get an event (public)
- POST /events - Create an event (admin)
- PUT /events/{id} - Replace an event (admin)
- DELETE /events/{id} - Delete an event, cascading to its submissions (admin)
"""

from .router import router

__all__ = ["router"]
