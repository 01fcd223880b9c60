# Middleware package init
"""
Handcrafted Haven Backend — Middleware Package
==============================================

What:  Concerns applied to every request before it reaches a route.

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Access Log] → [GZip] → [CORS] → Route

    1. Rate Limit rejects abusive clients before any work is done
    2. Request ID sets the correlation id that log lines and error bodies carry
    3. Access Log records method, path, status and duration with that id

Responses travel back through the same chain, which is how X-Request-ID
ends up on every response, error responses included.
"""
