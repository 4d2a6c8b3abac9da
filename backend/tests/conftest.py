from __future__ import annotations

import pytest

from ratedesk.config.settings import Settings, WalletProvider
from ratedesk.errors import NetworkFailure


class FakeFetch:
    """Async stand-in for ``HttpFetcher``: URL -> body or exception."""

    def __init__(self, responses: dict[str, object] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, float]] = []

    async def __call__(self, url: str, timeout: float) -> str:
        self.calls.append((url, timeout))
        response = self.responses.get(url)
        if response is None:
            raise NetworkFailure(url, "connection refused")
        if isinstance(response, BaseException):
            raise response
        return response


class MemoryBackend:
    def __init__(self, document: dict | None = None) -> None:
        self.document = document
        self.writes = 0

    def read(self) -> dict | None:
        return self.document

    def write(self, document: dict) -> None:
        self.writes += 1
        self.document = document


@pytest.fixture
def config(tmp_path) -> Settings:
    return Settings(
        state_file=str(tmp_path / "state.json"),
        run_on_startup=False,
        refresh_interval_minutes=0,
        wallets={
            "providers": [
                WalletProvider(name="Wallet A", url="https://a.example/rates"),
                WalletProvider(name="Wallet B", url="https://b.example/rates"),
                WalletProvider(name="Wallet C", url="https://c.example/rates"),
            ]
        },
    )
