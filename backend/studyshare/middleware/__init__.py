"""
StudyShare Backend — Middleware Package
=========================================

Cross-cutting concerns applied to every request.

Execution order for an incoming request (main.create_app adds them in reverse):
    RequestID → RateLimit → RequestLogging → GZip → CORS → route

    - request_id.py: X-Request-ID correlation id, stored in a ContextVar;
                     outermost, so a 429 carries the id too
    - rate_limit.py: per-IP sliding window; rejects before any other work
    - logging.py:    one access log line per request, level by status class
"""
