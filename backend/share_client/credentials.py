from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol


ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_DATA_KEY = "userData"


class CredentialStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryCredentialStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)


@dataclass
class AuthSession:
    """Explicit session context handed to owner-side collaborators."""

    store: CredentialStore
    user: dict[str, Any] | None = field(default=None)

    @property
    def access_token(self) -> str | None:
        token = (self.store.get(ACCESS_TOKEN_KEY) or "").strip()
        return token or None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def sign_in(self, *, access_token: str, refresh_token: str | None = None, user: dict[str, Any] | None = None) -> None:
        self.store.set(ACCESS_TOKEN_KEY, access_token)
        if refresh_token:
            self.store.set(REFRESH_TOKEN_KEY, refresh_token)
        if user is not None:
            self.store.set(USER_DATA_KEY, json.dumps(user))
            self.user = user

    def sign_out(self) -> None:
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_DATA_KEY):
            self.store.delete(key)
        self.user = None

    def load_user(self) -> dict[str, Any] | None:
        if self.user is not None:
            return self.user
        raw = self.store.get(USER_DATA_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        self.user = data if isinstance(data, dict) else None
        return self.user

    def auth_headers(self) -> dict[str, str]:
        token = self.access_token
        return {"Authorization": f"Bearer {token}"} if token else {}
