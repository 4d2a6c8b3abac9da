from __future__ import annotations

import datetime
import logging

from ratedesk.config.settings import Settings, WalletProvider, timeout_or_default
from ratedesk.errors import NetworkFailure
from ratedesk.parsing.strategies import Strategy, wallet_rate
from ratedesk.providers.http import Fetch
from ratedesk.schemas.indicator import WALLET_YIELDS, WalletResult
from ratedesk.state.store import StateStore


logger = logging.getLogger(__name__)

AGGREGATE_SOURCE = "multiple"


async def fetch_provider(
    provider: WalletProvider, strategy: Strategy, timeout: float, fetch: Fetch
) -> WalletResult:
    try:
        text = await fetch(provider.url, timeout)
    except NetworkFailure as exc:
        logger.warning("%s: %s unreachable (%s)", WALLET_YIELDS, provider.name, exc.reason)
        return WalletResult(provider=provider.name, url=provider.url, status="error")

    rate = strategy(text)
    if rate is None:
        logger.warning("%s: no rate found for %s", WALLET_YIELDS, provider.name)
        return WalletResult(provider=provider.name, url=provider.url, status="not_found")
    return WalletResult(provider=provider.name, rate=rate, url=provider.url, status="ok")


async def refresh_wallets(store: StateStore, config: Settings, fetch: Fetch) -> str:
    now = datetime.datetime.now(datetime.UTC)
    wallets = config.wallets
    strategy = wallet_rate(wallets.rate_labels, wallets.window_before, wallets.window_after)
    timeout = timeout_or_default(wallets.timeout_seconds, config)

    results: list[WalletResult] = []
    for provider in wallets.providers:
        results.append(await fetch_provider(provider, strategy, timeout, fetch))

    if not any(result.status == "ok" for result in results):
        logger.warning("%s: every provider failed, keeping previous value", WALLET_YIELDS)
        await store.save_failure(WALLET_YIELDS, "fallback")
        return "fallback"

    value = [result.model_dump() for result in results]
    await store.save_success(WALLET_YIELDS, value, AGGREGATE_SOURCE, now)
    logger.info(
        "%s updated (%d/%d providers ok)",
        WALLET_YIELDS,
        sum(1 for result in results if result.status == "ok"),
        len(results),
    )
    return "ok"
