"""Canonical configuration surface for TimeCredit services."""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# 0.1 display unit per minute worked
DEFAULT_RATE_PER_MINUTE_MINOR = 10**17
# 0.01 display unit sent to every freshly generated employee wallet
DEFAULT_REGISTRATION_FUNDING_MINOR = 10**16
DEFAULT_TRANSFER_GAS_UNITS = 21_000


class TimeCreditSettings(BaseSettings):
    """Main TimeCredit configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TIMECREDIT_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    # Environment
    environment: Literal["dev", "sandbox", "prod"] = "dev"

    # Chain execution mode
    chain_mode: Literal["simulated", "live"] = "simulated"
    rpc_url: str = "http://127.0.0.1:8545"
    chain_id: int = 1337
    # HTTP transport timeout; None leaves deadlines entirely to callers
    rpc_timeout_seconds: Optional[float] = 30.0

    # Deployed contracts (required in live mode)
    ledger_contract_address: str = ""
    catalog_contract_address: str = ""

    # Owner identity. Only OwnerSigner ever reads the secret value.
    owner_private_key: SecretStr = SecretStr("")
    # Withdrawals are paid here; empty means the owner address
    collection_address: str = ""

    # Accrual & transfer economics, all in minor units
    rate_per_minute_minor: int = DEFAULT_RATE_PER_MINUTE_MINOR
    transfer_gas_units: int = DEFAULT_TRANSFER_GAS_UNITS
    ledger_call_gas_limit: int = 300_000
    registration_funding_minor: int = DEFAULT_REGISTRATION_FUNDING_MINOR
    pay_on_accrual: bool = True

    # Display-currency equivalent of one display unit
    fiat_currency: str = "VND"
    fiat_rate_per_unit: Decimal = Decimal("20000")

    # Receipt handling
    await_receipts: bool = True
    receipt_timeout_seconds: float = 120.0
    receipt_poll_interval_seconds: float = 1.0

    # Attendance event log: "memory://" or "sqlite:///path/to/file.db"
    access_log_dsn: str = "memory://"
    # Per-product image folders, searched when no image_ref is given
    product_image_dir: str = ""
    # Genesis balance of the owner on the simulated network
    simulated_owner_funding_minor: int = 10_000 * 10**18

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("fiat_rate_per_unit", mode="before")
    @classmethod
    def parse_fiat_rate(cls, v):
        """Parse the exchange rate as an exact decimal, never through float."""
        if isinstance(v, float):
            raise ValueError("fiat_rate_per_unit must be given as a string or integer")
        try:
            rate = Decimal(str(v).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Invalid exchange rate: {v!r}") from exc
        if not rate.is_finite() or rate < 0:
            raise ValueError("fiat_rate_per_unit must be a non-negative finite decimal")
        return rate

    @field_validator(
        "rate_per_minute_minor",
        "transfer_gas_units",
        "ledger_call_gas_limit",
        "registration_funding_minor",
        "simulated_owner_funding_minor",
    )
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("minor-unit and gas settings must be non-negative")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def validate_live_mode(self) -> "TimeCreditSettings":
        """Live mode needs a real owner key and both contract addresses."""
        if self.chain_mode != "live":
            return self
        missing = []
        if not self.owner_private_key.get_secret_value():
            missing.append("owner_private_key")
        if not self.ledger_contract_address:
            missing.append("ledger_contract_address")
        if not self.catalog_contract_address:
            missing.append("catalog_contract_address")
        if missing:
            raise ValueError(
                "chain_mode=live requires: " + ", ".join(f"TIMECREDIT_{m.upper()}" for m in missing)
            )
        return self


@lru_cache
def load_settings(env_file: str | None = None) -> TimeCreditSettings:
    """Load TimeCreditSettings once per process to keep services consistent."""
    env_path = Path(env_file) if env_file else None
    return TimeCreditSettings(_env_file=env_path)
