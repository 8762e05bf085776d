"""
Repository layer.

Thin MongoDB persistence classes with no business rules. Each takes its Motor
collection in the constructor and translates unique-index violations into
ConflictError.
"""

from app.repositories.bucket_repository import BucketRepository
from app.repositories.file_repository import FileRepository
from app.repositories.user_repository import UserRepository


__all__ = ["BucketRepository", "FileRepository", "UserRepository"]
