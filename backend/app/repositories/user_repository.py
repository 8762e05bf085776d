"""User persistence."""

from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.models.user import User
from app.repositories.base import conflict_from_duplicate, utcnow


class UserRepository:
    def __init__(self, collection: AsyncIOMotorCollection) -> None:
        self._collection = collection

    async def find_by_id(self, user_id: str) -> User | None:
        document = await self._collection.find_one({"_id": user_id})
        return User.model_validate(document) if document else None

    async def find_by_email(self, email: str) -> User | None:
        document = await self._collection.find_one({"email": email.strip().lower()})
        return User.model_validate(document) if document else None

    async def create(self, user: User) -> User:
        """
        Insert a new user.

        Raises:
            ConflictError: If the email is already registered.
        """
        try:
            await self._collection.insert_one(user.model_dump(by_alias=True))
        except DuplicateKeyError as error:
            raise conflict_from_duplicate(error, "User") from error
        return user

    async def update(self, user_id: str, fields: dict[str, Any]) -> User | None:
        try:
            document = await self._collection.find_one_and_update(
                {"_id": user_id},
                {"$set": {**fields, "updated_at": utcnow()}},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as error:
            raise conflict_from_duplicate(error, "User") from error
        return User.model_validate(document) if document else None

    async def delete(self, user_id: str) -> bool:
        result = await self._collection.delete_one({"_id": user_id})
        return result.deleted_count > 0
