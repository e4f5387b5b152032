"""Database layer: declarative bases, engine and session management."""

from procurement_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString

__all__ = ["Base", "TrackedBase", "UTCDateTime", "UUIDString"]
