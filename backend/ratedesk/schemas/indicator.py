from __future__ import annotations

import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


RATE_FX = "rate-fx"
WALLET_YIELDS = "wallet-yields"
REPO_RATES = "repo-rates"
TERM_DEPOSIT_RATES = "term-deposit-rates"

# Cycle order as well as the fixed key set of the state document.
INDICATORS: tuple[str, ...] = (RATE_FX, WALLET_YIELDS, REPO_RATES, TERM_DEPOSIT_RATES)

Status = Literal["initial", "ok", "fallback", "not_found", "error"]
FailureStatus = Literal["fallback", "not_found", "error"]
FAILURE_STATUSES = frozenset({"fallback", "not_found", "error"})


class IndicatorSnapshot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: Any = None
    source: str | None = None
    updated_at: datetime.datetime | None = Field(default=None, alias="updatedAt")
    status: Status = "initial"


class WalletResult(BaseModel):
    provider: str
    rate: str | None = None
    url: str
    status: Literal["ok", "not_found", "error"]


class CycleReport(BaseModel):
    ok: bool
    started_at: datetime.datetime
    finished_at: datetime.datetime | None = None
    statuses: dict[str, Status] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)
    coalesced: bool = False
