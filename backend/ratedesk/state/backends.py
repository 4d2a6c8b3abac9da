from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Protocol

from redis import Redis
from redis.exceptions import RedisError

from ratedesk.config.settings import Settings
from ratedesk.errors import PersistenceFailure


class StateBackend(Protocol):
    def read(self) -> dict | None: ...

    def write(self, document: dict) -> None: ...


class FileStateBackend:
    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)

    def read(self) -> dict | None:
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise PersistenceFailure(f"cannot read {self.path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise PersistenceFailure(f"{self.path} does not hold a JSON object")
        return payload

    def write(self, document: dict) -> None:
        body = json.dumps(document, indent=2, ensure_ascii=False)
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(body)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as exc:
            raise PersistenceFailure(f"cannot write {self.path}: {exc}") from exc


class RedisStateBackend:
    def __init__(self, redis_url: str, key: str, socket_timeout: float | None = None) -> None:
        self.redis_url = redis_url
        self.key = key
        self.socket_timeout = socket_timeout

    def _get_client(self) -> Redis:
        return Redis.from_url(
            self.redis_url,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
        )

    def read(self) -> dict | None:
        try:
            raw = self._get_client().get(self.key)
        except RedisError as exc:
            raise PersistenceFailure(f"cannot read redis key {self.key}: {exc}") from exc
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, TypeError, ValueError) as exc:
            raise PersistenceFailure(f"redis key {self.key} is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise PersistenceFailure(f"redis key {self.key} does not hold a JSON object")
        return payload

    def write(self, document: dict) -> None:
        try:
            self._get_client().set(self.key, json.dumps(document, ensure_ascii=False))
        except RedisError as exc:
            raise PersistenceFailure(f"cannot write redis key {self.key}: {exc}") from exc


def build_backend(settings: Settings) -> StateBackend:
    if settings.state_backend == "redis":
        return RedisStateBackend(
            settings.redis_url, settings.state_key, settings.redis_socket_timeout_seconds
        )
    return FileStateBackend(settings.state_file)
