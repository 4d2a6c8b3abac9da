from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from ratedesk.errors import ExtractionFailure, NetworkFailure
from ratedesk.parsing.strategies import Strategy
from ratedesk.providers.http import Fetch


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Source:
    url: str
    timeout: float
    strategies: Sequence[Strategy]


@dataclass(frozen=True)
class Acquired:
    value: Any
    source: str


def extract(text: str, strategies: Sequence[Strategy]) -> Any:
    for strategy in strategies:
        value = strategy(text)
        if value is not None:
            return value
    raise ExtractionFailure("no extraction strategy matched")


async def acquire_first(indicator: str, sources: Sequence[Source], fetch: Fetch) -> Acquired | None:
    """Try ``sources`` in order; ``None`` once all of them failed."""
    for source in sources:
        try:
            text = await fetch(source.url, source.timeout)
            value = extract(text, source.strategies)
        except NetworkFailure as exc:
            logger.warning("%s: source %s unreachable (%s)", indicator, source.url, exc.reason)
            continue
        except ExtractionFailure as exc:
            logger.warning("%s: nothing extracted from %s (%s)", indicator, source.url, exc)
            continue
        return Acquired(value=value, source=source.url)
    return None
