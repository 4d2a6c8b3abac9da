from __future__ import annotations

import re

from bs4 import BeautifulSoup


PERCENT_RE = re.compile(r"(?<![\d.,])(\d{1,3}[.,]\d{1,2})\s*%")
LOOSE_RATE_RE = re.compile(r"(?<![\d.,])(\d{1,3}[.,]\d{1,2})(?![\d.,])\s*%?")
AMOUNT_RE = re.compile(r"\d{1,3}(?:[.,]\d{3})+[.,]\d{2}(?!\d)|\d+[.,]\d{2}(?!\d)")
NOISE_RE = re.compile(r"[^\d,.\-]")

_SKIPPED_TAGS = {"script", "style", "noscript", "template"}


def normalize_decimal(raw: str | None) -> str | None:
    """Turn a scraped number such as ``"$ 1.234,50"`` or ``"62,5%"`` into ``"1234.50"``/``"62.5"``."""
    if not raw:
        return None
    cleaned = NOISE_RE.sub("", raw).strip(".,")
    if not any(ch.isdigit() for ch in cleaned):
        return None
    if "," in cleaned and "." in cleaned:
        # Whichever separator comes last is the decimal one.
        if cleaned.rfind(",") > cleaned.rfind("."):
            cleaned = cleaned.replace(".", "").replace(",", ".")
        else:
            cleaned = cleaned.replace(",", "")
    else:
        cleaned = cleaned.replace(",", ".")
    return cleaned


def normalize_percentage(raw: str | None) -> str | None:
    value = normalize_decimal(raw)
    return f"{value}%" if value is not None else None


def find_percentages(text: str) -> list[str]:
    """All percentage tokens in ``text``, left to right, normalised to ``"62.5%"``."""
    results: list[str] = []
    for match in PERCENT_RE.finditer(text or ""):
        value = normalize_percentage(match.group(1))
        if value is not None:
            results.append(value)
    return results


def find_amounts(text: str) -> list[str]:
    results: list[str] = []
    for match in AMOUNT_RE.finditer(text or ""):
        value = normalize_decimal(match.group(0))
        if value is not None:
            results.append(value)
    return results


def find_near_label(
    text: str,
    label: str,
    before: int = 0,
    after: int = 200,
    pattern: re.Pattern = PERCENT_RE,
) -> str | None:
    """
    First ``pattern`` match within ``before``/``after`` characters of any
    occurrence of ``label``, normalised as a percentage.
    """
    if not text:
        return None
    for label_match in re.finditer(label, text, re.IGNORECASE):
        start = max(0, label_match.start() - before)
        window = text[start:label_match.end() + after]
        match = pattern.search(window)
        if match:
            return normalize_percentage(match.group(1))
    return None


def _soup(markup: str | BeautifulSoup) -> BeautifulSoup:
    if isinstance(markup, BeautifulSoup):
        return markup
    return BeautifulSoup(markup or "", "html.parser")


def _label_nodes(soup: BeautifulSoup, label: str):
    pattern = re.compile(label, re.IGNORECASE)
    for node in soup.find_all(string=pattern):
        parent = node.parent
        if parent is None or parent.name in _SKIPPED_TAGS:
            continue
        yield node


def find_in_enclosing_block(
    markup: str | BeautifulSoup, label: str, minimum: int = 2
) -> list[str]:
    """
    Amount tokens inside the nearest ``<div>`` that encloses a text node
    mentioning ``label``. Returns an empty list unless at least ``minimum``
    tokens are found in one block.
    """
    soup = _soup(markup)
    for node in _label_nodes(soup, label):
        block = node.find_parent("div") or node.parent
        amounts = find_amounts(block.get_text(" "))
        if len(amounts) >= minimum:
            return amounts
    return []


def find_after_label(markup: str | BeautifulSoup, label: str) -> str | None:
    """Text of the element following the first element labelled ``label``."""
    soup = _soup(markup)
    for node in _label_nodes(soup, label):
        sibling = node.parent.find_next_sibling()
        if sibling is None:
            continue
        text = sibling.get_text(" ", strip=True)
        if text:
            return text
    return None
