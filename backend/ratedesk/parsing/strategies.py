"""
Extraction strategies.

A strategy is a pure function from a response body to an extracted value,
or ``None`` when the body does not contain what it looks for. Sources list
their strategies in order; the first non-``None`` result wins.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Iterable

from bs4 import BeautifulSoup

from ratedesk.parsing.extract import (
    LOOSE_RATE_RE,
    find_after_label,
    find_in_enclosing_block,
    find_near_label,
    find_percentages,
    normalize_decimal,
)


Strategy = Callable[[str], Any]


def json_payload(text: str) -> Any:
    try:
        payload = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None
    if payload in (None, "", {}, []):
        return None
    return payload


def fx_tier_block(tier_label: str) -> Strategy:
    key = tier_label.strip().lower()

    def strategy(text: str) -> dict | None:
        soup = BeautifulSoup(text or "", "html.parser")
        amounts = find_in_enclosing_block(soup, tier_label, minimum=2)
        if amounts:
            return {key: {"buy": amounts[0], "sell": amounts[1]}}
        buy = normalize_decimal(find_after_label(soup, "Compra"))
        sell = normalize_decimal(find_after_label(soup, "Venta"))
        if buy is None and sell is None:
            return None
        return {key: {"buy": buy, "sell": sell}}

    return strategy


def percent_threshold(min_matches: int, max_values: int) -> Strategy:
    def strategy(text: str) -> dict | None:
        matches = find_percentages(text)
        # Fewer hits than this are stray percentages, not the rate table.
        if len(matches) < min_matches:
            return None
        return {"raw": matches[:max_values]}

    return strategy


def labeled_percent(label: str, window: int) -> Strategy:
    def strategy(text: str) -> dict | None:
        rate = find_near_label(text, label, before=0, after=window)
        if rate is None:
            return None
        return {"raw": [rate]}

    return strategy


def wallet_rate(labels: Iterable[str], before: int, after: int) -> Strategy:
    label_pattern = "|".join(labels)

    def strategy(text: str) -> str | None:
        matches = find_percentages(text)
        if matches:
            return matches[0]
        if not label_pattern:
            return None
        # Next to a rate label the percent sign is often dropped or styled separately.
        return find_near_label(
            text, label_pattern, before=before, after=after, pattern=LOOSE_RATE_RE
        )

    return strategy
