from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from web3 import Web3

from mintbot.engine.errors import ConfigurationError

MODES = ("simple", "single", "multi")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    MODE: Literal["simple", "single", "multi"] = "single"

    # Network / target
    RPC_URL: Optional[str] = None
    CONTRACT_ADDRESS: Optional[str] = None
    CHAIN_ID: Optional[int] = Field(default=None, gt=0)
    RPC_TIMEOUT_SECONDS: int = Field(default=60, gt=0)

    # Contract call
    MINT_FUNC: str = "mint"
    MINT_AMOUNT: int = Field(default=1, ge=1)
    MINT_PRICE: Decimal = Field(default=Decimal("0"), ge=0, description="Price per unit in ether")
    GAS_LIMIT: Optional[int] = Field(default=None, gt=0)
    ABI_OVERRIDE: Optional[str] = None

    # Retry
    RETRY_ATTEMPTS: int = Field(default=5, ge=1)
    RETRY_BACKOFF_MS: int = Field(default=2000, gt=0)
    RETRY_BACKOFF_MULTIPLIER: Decimal = Field(default=Decimal("1.6"), ge=1)
    GAS_BUMP_PERCENT: int = Field(default=15, ge=0)

    # Fee overrides (gwei)
    MAX_FEE_GWEI: Optional[Decimal] = Field(default=None, gt=0)
    MAX_PRIORITY_GWEI: Optional[Decimal] = Field(default=None, gt=0)
    GAS_PRICE_GWEI: Optional[Decimal] = Field(default=None, gt=0)

    # Confirmation
    CONFIRMATION_TIMEOUT_SECONDS: float = Field(default=120, gt=0)
    CONFIRMATION_POLL_SECONDS: float = Field(default=2, gt=0)

    # Signers
    PRIVATE_KEY: Optional[str] = None
    PRIVATE_KEYS: Optional[str] = None
    TX_DELAY_MS: int = Field(default=2000, ge=0)

    DRY_RUN: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = None
    LOG_JSON: bool = False

    # Monitoring
    ENABLE_METRICS: bool = False
    METRICS_PORT: int = 9090

    # Optional path to a YAML config that can override/extend env
    CONFIG_YAML: Optional[str] = Field(default="config/settings.yaml")

    @field_validator("MODE", mode="before")
    @classmethod
    def _normalize_mode(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("MINT_FUNC")
    @classmethod
    def _validate_function_name(cls, v: str) -> str:
        v = v.strip()
        if not v.isidentifier():
            raise ValueError(f"MINT_FUNC must be a function name, got {v!r}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def unit_price_wei(self) -> int:
        return int(Web3.to_wei(self.MINT_PRICE, "ether"))

    @property
    def max_fee_wei(self) -> Optional[int]:
        return _gwei_to_wei(self.MAX_FEE_GWEI)

    @property
    def max_priority_fee_wei(self) -> Optional[int]:
        return _gwei_to_wei(self.MAX_PRIORITY_GWEI)

    @property
    def gas_price_wei(self) -> Optional[int]:
        return _gwei_to_wei(self.GAS_PRICE_GWEI)

    @property
    def private_keys(self) -> Tuple[str, ...]:
        """Signer keys for the configured mode, in order."""
        if self.MODE == "multi":
            raw = self.PRIVATE_KEYS or ""
            return tuple(k.strip() for k in raw.split(",") if k.strip())
        if self.PRIVATE_KEY and self.PRIVATE_KEY.strip():
            return (self.PRIVATE_KEY.strip(),)
        return ()

    def masked_dump(self) -> Dict[str, Any]:
        """Settings as a dict with private keys hidden."""
        data = self.model_dump()
        if data.get("PRIVATE_KEY"):
            data["PRIVATE_KEY"] = "***"
        if data.get("PRIVATE_KEYS"):
            count = sum(1 for k in self.PRIVATE_KEYS.split(",") if k.strip())
            data["PRIVATE_KEYS"] = f"*** ({count} keys)"
        return data


def _gwei_to_wei(value: Optional[Decimal]) -> Optional[int]:
    if value is None:
        return None
    return int(Web3.to_wei(value, "gwei"))


def load_settings(config_path: Optional[str] = None, **overrides: Any) -> Settings:
    """Load Settings from env (.env) and optionally merge a YAML file for overrides.

    Environment variables always take precedence over YAML values; keyword
    overrides take precedence over both.

    Raises:
        ConfigurationError: If any value fails validation.
    """
    try:
        base = Settings()  # loads from env/.env

        yaml_path = config_path or base.CONFIG_YAML
        data: Dict[str, Any] = {}
        if yaml_path and Path(yaml_path).exists():
            with open(yaml_path, "r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ConfigurationError(f"{yaml_path} must contain a mapping")
            data = {str(k).upper(): v for k, v in loaded.items()}
        elif config_path:
            raise ConfigurationError(f"Config file not found: {config_path}")

        if not data and not overrides:
            return base

        # Only values that came from env/.env override the YAML file.
        explicit = base.model_dump(include=base.model_fields_set)
        return Settings(**{**data, **explicit, **overrides})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
