from decimal import Decimal
from enum import Enum
from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    db_url: str = "sqlite:///./wagers.db"
    cron_secret: Optional[str] = None
    admin_token: Optional[str] = None

    match_provider_api_key: str = "change_key"
    match_provider_base_url: Optional[AnyHttpUrl] = None
    default_region: str = "euw1"
    ranked_queue_id: int = 420
    max_retries: int = 2
    retry_backoff_seconds: float = 0.5
    rate_limit_per_minute: int = 20

    house_edge: Decimal = Decimal("0.15")
    default_odds: Decimal = Decimal("1.70")
    min_win_probability: Decimal = Decimal("0.25")
    max_win_probability: Decimal = Decimal("0.80")
    min_odds: Decimal = Decimal("1.20")
    max_odds: Decimal = Decimal("3.00")

    virtual_platform_fee: Decimal = Decimal("0.05")
    real_platform_fee: Decimal = Decimal("0.00")
    virtual_min_stake: Decimal = Decimal("1.00")
    virtual_max_stake: Decimal = Decimal("30.00")
    real_min_stake: Decimal = Decimal("0.50")
    real_max_stake: Decimal = Decimal("10.00")
    starting_virtual_balance: Decimal = Decimal("500.00")

    log_level: str = "INFO"

    min_game_minutes: int = 15
    resolver_call_delay_seconds: float = 0.15

settings = Settings()

class CurrencyMode(str, Enum):
    VIRTUAL = "virtual"
    REAL = "real"

class WagerStatus(str, Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    CANCELLED = "cancelled"

class Currency(str, Enum):
    """Ledger balance columns on the accounts table."""
    VIRTUAL = "virtual_balance"
    REAL = "real_balance"
    REWARD = "reward_credits"

mode_currency_map = {
    CurrencyMode.VIRTUAL: Currency.VIRTUAL,
    CurrencyMode.REAL: Currency.REAL,
}

region_routing_map = {
    "euw1": "europe", "eun1": "europe", "tr1": "europe", "ru": "europe",
    "na1": "americas", "br1": "americas", "la1": "americas", "la2": "americas",
    "kr": "asia", "jp1": "asia",
    "oc1": "sea", "ph2": "sea", "sg2": "sea", "th2": "sea", "tw2": "sea", "vn2": "sea",
}


def stake_bounds(mode: CurrencyMode) -> tuple[Decimal, Decimal]:
    if mode == CurrencyMode.REAL:
        return settings.real_min_stake, settings.real_max_stake
    return settings.virtual_min_stake, settings.virtual_max_stake


def platform_fee(mode: CurrencyMode) -> Decimal:
    if mode == CurrencyMode.REAL:
        return settings.real_platform_fee
    return settings.virtual_platform_fee
