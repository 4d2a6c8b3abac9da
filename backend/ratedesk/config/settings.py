from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, Field, AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


class FxSourceSettings(BaseModel):
    api_url: str = "https://dolarapi.com/v1/dolares/blue"
    api_timeout_seconds: float = 7.0
    scrape_url: str = "https://dolarhoy.com/"
    scrape_timeout_seconds: float | None = None
    tier_label: str = "Blue"


class WalletProvider(BaseModel):
    name: str
    url: str


class WalletSettings(BaseModel):
    providers: List[WalletProvider] = Field(
        default_factory=lambda: [
            WalletProvider(name="Mercado Pago", url="https://www.mercadopago.com.ar/ayuda/4269"),
            WalletProvider(name="Ualá", url="https://www.uala.com.ar/ahorro"),
        ]
    )
    timeout_seconds: float | None = None
    rate_labels: List[str] = Field(default_factory=lambda: ["TNA", r"T\.E\.A"])
    window_before: int = 80
    window_after: int = 120


class RateTableSettings(BaseModel):
    url: str
    timeout_seconds: float = 9.0
    # Heuristic tuning against the current page layout.
    min_matches: int
    max_values: int
    label: str
    label_window: int = 300


class RepoSettings(RateTableSettings):
    url: str = "https://iol.invertironline.com/mercado/cauciones"
    min_matches: int = 3
    max_values: int = 6
    label: str = "Cauci[oó]n"


class TermDepositSettings(RateTableSettings):
    url: str = "https://www.bcra.gob.ar/BCRAyVos/Plazos_fijos.asp"
    min_matches: int = 4
    max_values: int = 8
    label: str = "Banco"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="RATEDESK_",
        env_file=("../.env", ".env"),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = Field(default=3000, validation_alias=AliasChoices("PORT", "RATEDESK_PORT"))

    # 0 disables the interval job.
    refresh_interval_minutes: float = 15.0
    request_timeout_seconds: float = 8.0
    user_agent: str = "Mozilla/5.0 (compatible; ratedesk/0.1)"
    run_on_startup: bool = True
    log_level: str = "INFO"

    state_backend: Literal["file", "redis"] = "file"
    state_file: str = "state.json"
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        validation_alias=AliasChoices("REDIS_URL", "RATEDESK_REDIS_URL"),
    )
    state_key: str = "ratedesk:state"
    redis_socket_timeout_seconds: float = 2.0

    fx: FxSourceSettings = Field(default_factory=FxSourceSettings)
    wallets: WalletSettings = Field(default_factory=WalletSettings)
    repo: RepoSettings = Field(default_factory=RepoSettings)
    term_deposits: TermDepositSettings = Field(default_factory=TermDepositSettings)


def timeout_or_default(timeout: float | None, config: Settings) -> float:
    return timeout if timeout is not None else config.request_timeout_seconds


settings = Settings()
