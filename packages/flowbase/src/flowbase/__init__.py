"""
Flowbase - shared infrastructure for the flow session runtime.

Provides settings, logging, SQLAlchemy engine/session factories and
the Redis connection pool used by every runtime package and app.
"""
