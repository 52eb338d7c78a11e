# Middleware package init
"""
Blog Platform Backend — Middleware Package
==========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [CORS] → [GZip] → [Database Gate] → Route Handler

    1. Request ID first: every later log line and error body can carry it
    2. Logging: records status and duration, including gate rejections
    3. CORS: preflight answered before the gate (no database needed)
    4. Database Gate: /api/* only, /api/diagnostic/* excluded

    Responses travel the chain in reverse, so the request id header is
    added even to gate rejections.
"""
