"""
Centralized Configuration for the Engine
Uses Pydantic Settings with .env loading.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cryptopulse.core.errors import ConfigurationError
from cryptopulse.shared.models import AlertSeverity, ComparisonOperator, RiskMetric


class ConfigErrorMixin:
    """
    Mixin that reports failed construction as ConfigurationError.

    Nested models are validated by their parent, so only the outermost
    constructor converts the pydantic error.
    """
    __slots__ = ()

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid {type(self).__name__}: {exc}") from exc


class FeeModel(str, Enum):
    """Fee model applied to every fill."""
    FLAT = "flat"
    PERCENTAGE = "percentage"
    MAKER_TAKER = "maker_taker"


class FeeSettings(ConfigErrorMixin, BaseSettings):
    """Fee model settings."""
    model_config = SettingsConfigDict(env_prefix="FEE_", extra="ignore")

    kind: FeeModel = FeeModel.PERCENTAGE
    flat_fee: Decimal = Decimal("0")
    rate: Decimal = Decimal("0.001")  # 0.1% (10 bps)
    maker_rate: Decimal = Decimal("0.0002")
    taker_rate: Decimal = Decimal("0.0004")

    @field_validator("flat_fee", "rate", "maker_rate", "taker_rate")
    @classmethod
    def validate_non_negative(cls, v: Decimal) -> Decimal:
        """Fees may be zero but never negative."""
        if v < 0:
            raise ValueError("fee values must be non-negative")
        return v


class RiskWeights(ConfigErrorMixin, BaseModel):
    """Weights of the composite risk score."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    drawdown: Decimal = Decimal("0.5")
    volatility: Decimal = Decimal("0.3")
    exposure: Decimal = Decimal("0.2")

    @model_validator(mode="after")
    def validate_weights(self) -> "RiskWeights":
        """Weights must be non-negative and not all zero."""
        weights = (self.drawdown, self.volatility, self.exposure)
        if any(w < 0 for w in weights):
            raise ValueError("risk weights must be non-negative")
        if sum(weights) == 0:
            raise ValueError("at least one risk weight must be positive")
        return self


class ThresholdRule(ConfigErrorMixin, BaseModel):
    """Threshold on one risk metric."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    operator: ComparisonOperator
    value: Decimal
    severity: AlertSeverity = AlertSeverity.WARNING


def _default_thresholds() -> dict[RiskMetric, ThresholdRule]:
    return {
        RiskMetric.DRAWDOWN: ThresholdRule(
            operator=ComparisonOperator.GT,
            value=Decimal("0.20"),
            severity=AlertSeverity.CRITICAL,
        ),
    }


class RiskSettings(ConfigErrorMixin, BaseSettings):
    """Risk engine settings."""
    model_config = SettingsConfigDict(env_prefix="RISK_", extra="ignore")

    weights: RiskWeights = Field(default_factory=RiskWeights)
    thresholds: dict[RiskMetric, ThresholdRule] = Field(default_factory=_default_thresholds)
    window: int = 20  # trailing returns used for volatility

    @field_validator("window")
    @classmethod
    def validate_window(cls, v: int) -> int:
        """Volatility needs at least two returns."""
        if v < 2:
            raise ValueError("risk window must be at least 2")
        return v


class LoggingSettings(ConfigErrorMixin, BaseSettings):
    """Logging settings."""
    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")

    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    @field_validator("level", mode="before")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Normalize level names."""
        return str(v).upper()


class EngineSettings(ConfigErrorMixin, BaseSettings):
    """Main engine settings."""
    model_config = SettingsConfigDict(
        env_prefix="CRYPTOPULSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Account
    initial_cash: Decimal = Decimal("10000")
    allow_short: bool = False
    leverage: Decimal = Decimal("1")

    # Execution
    slippage_bps: Decimal = Decimal("0")
    price_precision: int = 8  # decimal places for prices and money
    quantity_precision: int = 8  # decimal places for quantities

    # Statistics
    periods_per_year: int = 365

    # Sub-settings (loaded from same .env)
    fee: FeeSettings = Field(default_factory=FeeSettings)
    risk: RiskSettings = Field(default_factory=RiskSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @field_validator("initial_cash")
    @classmethod
    def validate_initial_cash(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("initial_cash must be positive")
        return v

    @field_validator("leverage")
    @classmethod
    def validate_leverage(cls, v: Decimal) -> Decimal:
        if v < 1:
            raise ValueError("leverage must be >= 1")
        return v

    @field_validator("slippage_bps")
    @classmethod
    def validate_slippage(cls, v: Decimal) -> Decimal:
        if v < 0 or v >= 10000:
            raise ValueError("slippage_bps must be in [0, 10000)")
        return v

    @field_validator("price_precision", "quantity_precision")
    @classmethod
    def validate_precision(cls, v: int) -> int:
        if not 0 <= v <= 18:
            raise ValueError("precision must be between 0 and 18 decimal places")
        return v

    @field_validator("periods_per_year")
    @classmethod
    def validate_periods(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("periods_per_year must be positive")
        return v

    @property
    def price_quantum(self) -> Decimal:
        """Smallest price/money increment."""
        return Decimal(1).scaleb(-self.price_precision)

    @property
    def quantity_quantum(self) -> Decimal:
        """Smallest quantity increment."""
        return Decimal(1).scaleb(-self.quantity_precision)


def load_settings(**overrides: Any) -> EngineSettings:
    """
    Build settings from the environment plus explicit overrides.

    Raises:
        ConfigurationError: if any value fails validation
    """
    return EngineSettings(**overrides)


@lru_cache()
def get_settings() -> EngineSettings:
    """Get cached settings instance."""
    return load_settings()


def reload_settings() -> EngineSettings:
    """Force reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
