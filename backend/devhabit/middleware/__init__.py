"""
DevHabit Backend — Middleware Package
=======================================

What:  Cross-cutting HTTP concerns applied to every request.

Chain (outermost first):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → [ETag] → Route

    Request ID runs first so every log line and problem body of the request
    carries the same correlation ID. ETag sits innermost because it needs the
    uncompressed JSON body to fingerprint it and must short-circuit stale
    writes before the handler touches the database.
"""
