"""Kernel-owned ORM models."""

from procurement_kernel.models.user import UserModel

__all__ = ["UserModel"]
