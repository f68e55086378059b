"""User-facing services."""

from .base import BaseService, Repository
from .utils import normalize_email


class UserService(BaseService):
    name = "users"

    async def get_user(self, user_id: str) -> dict | None:
        record = self.repository.get(user_id)
        return record

    def create_user(self, email: str, display_name: str) -> dict:
        return {"email": normalize_email(email), "name": display_name}


async def load_users(service: UserService, ids: list[str]) -> list[dict]:
    users = []
    for user_id in ids:
        user = await service.get_user(user_id)
        if user is not None:
            users.append(user)
    return users


def build_service(repository: Repository) -> UserService:
    return UserService(repository)
