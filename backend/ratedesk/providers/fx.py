from __future__ import annotations

import datetime
import logging

from ratedesk.config.settings import Settings, timeout_or_default
from ratedesk.parsing.strategies import fx_tier_block, json_payload
from ratedesk.providers.chain import Source, acquire_first
from ratedesk.providers.http import Fetch
from ratedesk.schemas.indicator import RATE_FX
from ratedesk.state.store import StateStore


logger = logging.getLogger(__name__)


def build_sources(config: Settings) -> list[Source]:
    fx = config.fx
    return [
        Source(url=fx.api_url, timeout=fx.api_timeout_seconds, strategies=[json_payload]),
        Source(
            url=fx.scrape_url,
            timeout=timeout_or_default(fx.scrape_timeout_seconds, config),
            strategies=[fx_tier_block(fx.tier_label)],
        ),
    ]


async def refresh_fx(store: StateStore, config: Settings, fetch: Fetch) -> str:
    now = datetime.datetime.now(datetime.UTC)
    acquired = await acquire_first(RATE_FX, build_sources(config), fetch)
    if acquired is None:
        logger.warning("%s: all sources failed, keeping previous value", RATE_FX)
        await store.save_failure(RATE_FX, "fallback")
        return "fallback"
    await store.save_success(RATE_FX, acquired.value, acquired.source, now)
    logger.info("%s updated from %s", RATE_FX, acquired.source)
    return "ok"
