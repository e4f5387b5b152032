from procurement_kernel.repositories.base import BaseRepository
from procurement_kernel.repositories.users import UserRepository

__all__ = ["BaseRepository", "UserRepository"]
