"""In-memory ``UserDirectory`` used by tests and embedded deployments."""

from __future__ import annotations

from typing import Iterable

from siteops_kernel.domain.org import ScopedUser
from siteops_kernel.exceptions import UserNotFoundError


class InMemoryUserDirectory:
    """Maps user ids to ``ScopedUser`` records."""

    def __init__(self, users: Iterable[ScopedUser] = ()):
        self._users: dict[str, ScopedUser] = {}
        for user in users:
            self.put(user)

    def put(self, user: ScopedUser) -> None:
        self._users[user.id] = user

    def get_user(self, user_id: str) -> ScopedUser:
        try:
            return self._users[user_id]
        except KeyError:
            raise UserNotFoundError(user_id) from None

    def __len__(self) -> int:
        return len(self._users)
