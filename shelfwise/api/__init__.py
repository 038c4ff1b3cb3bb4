"""API - FastAPI routers, dependencies and global error handlers.

Invariants:
    - Routes stay thin: parse, authorize, call a service, shape the response
"""
