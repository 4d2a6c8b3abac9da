from __future__ import annotations

import datetime
import logging

from ratedesk.config.settings import RateTableSettings, Settings
from ratedesk.parsing.strategies import labeled_percent, percent_threshold
from ratedesk.providers.chain import Source, acquire_first
from ratedesk.providers.http import Fetch
from ratedesk.schemas.indicator import REPO_RATES, TERM_DEPOSIT_RATES
from ratedesk.state.store import StateStore


logger = logging.getLogger(__name__)


def build_source(table: RateTableSettings) -> Source:
    return Source(
        url=table.url,
        timeout=table.timeout_seconds,
        strategies=[
            percent_threshold(table.min_matches, table.max_values),
            labeled_percent(table.label, table.label_window),
        ],
    )


async def _refresh_table(
    indicator: str, table: RateTableSettings, store: StateStore, fetch: Fetch
) -> str:
    now = datetime.datetime.now(datetime.UTC)
    acquired = await acquire_first(indicator, [build_source(table)], fetch)
    if acquired is None:
        logger.warning("%s: no rates detected, keeping previous value", indicator)
        await store.save_failure(indicator, "fallback")
        return "fallback"
    await store.save_success(indicator, acquired.value, acquired.source, now)
    logger.info("%s updated from %s", indicator, acquired.source)
    return "ok"


async def refresh_repo_rates(store: StateStore, config: Settings, fetch: Fetch) -> str:
    return await _refresh_table(REPO_RATES, config.repo, store, fetch)


async def refresh_term_deposits(store: StateStore, config: Settings, fetch: Fetch) -> str:
    return await _refresh_table(TERM_DEPOSIT_RATES, config.term_deposits, store, fetch)
