"""
Schemas module - Request/Response schemas for API endpoints.

Enums mirror the stored document values; command objects validate request
bodies before any business logic runs.
"""
