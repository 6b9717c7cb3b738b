from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _load_local_env_file(path: Path) -> None:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not _ENV_KEY_RE.fullmatch(key):
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
            value = value[1:-1]
        os.environ.setdefault(key, value)


def bootstrap_local_env() -> None:
    repo_root = Path(__file__).resolve().parents[2]
    for candidate in (repo_root / ".env", repo_root / "backend/.env"):
        if candidate.exists():
            _load_local_env_file(candidate)


def _env_float(name: str, default: float) -> float:
    try:
        value = float(os.getenv(name, str(default)) or default)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    try:
        value = int(os.getenv(name, str(default)) or default)
    except ValueError:
        return default
    return max(1, value)


@dataclass(frozen=True)
class ShareClientSettings:
    api_base_url: str = "http://localhost:5000"
    api_version: str = "/api"
    frontend_base_url: str = "http://localhost:8081"
    public_timeout_seconds: float = 10.0
    private_timeout_seconds: float = 30.0
    max_connections: int = 100
    max_keepalive_connections: int = 20

    @property
    def api_root(self) -> str:
        version = self.api_version.strip()
        if version and not version.startswith("/"):
            version = "/" + version
        return f"{self.api_base_url.rstrip('/')}{version.rstrip('/')}"

    @property
    def public_root(self) -> str:
        return f"{self.api_root}/public"

    @classmethod
    def from_env(cls) -> "ShareClientSettings":
        return cls(
            api_base_url=(os.getenv("HEALTHSHARE_API_BASE_URL") or cls.api_base_url).strip().rstrip("/"),
            api_version=(os.getenv("HEALTHSHARE_API_VERSION") or cls.api_version).strip(),
            frontend_base_url=(os.getenv("HEALTHSHARE_FRONTEND_BASE_URL") or cls.frontend_base_url).strip().rstrip("/"),
            public_timeout_seconds=_env_float("HEALTHSHARE_PUBLIC_TIMEOUT_SECONDS", cls.public_timeout_seconds),
            private_timeout_seconds=_env_float("HEALTHSHARE_PRIVATE_TIMEOUT_SECONDS", cls.private_timeout_seconds),
            max_connections=_env_int("HEALTHSHARE_HTTP_MAX_CONNECTIONS", cls.max_connections),
            max_keepalive_connections=_env_int(
                "HEALTHSHARE_HTTP_MAX_KEEPALIVE_CONNECTIONS", cls.max_keepalive_connections
            ),
        )
