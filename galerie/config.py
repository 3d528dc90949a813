import os

from pathlib import Path
from typing import Any, List

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]

ADAPTER_IDS = ("legacy-popup", "direct-wallet", "popup-identity")

_TESTNET_PASSPHRASE = "Test SDF Network ; September 2015"
_PUBLIC_PASSPHRASE = "Public Global Stellar Network ; September 2015"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Ensure we pick up the front-end's legacy environment variable names."""

        super().model_post_init(__context)

        if not self.web3auth_client_id:
            fallback = os.getenv("VITE_WEB3AUTH_CLIENT_ID") or os.getenv("REACT_APP_WEB3AUTH_CLIENT_ID")
            if fallback:
                object.__setattr__(self, "web3auth_client_id", fallback)

        if not self.moonpay_api_key:
            fallback = os.getenv("VITE_MOONPAY_API_KEY") or os.getenv("REACT_APP_MOONPAY_PUBLISHABLE_KEY")
            if fallback:
                object.__setattr__(self, "moonpay_api_key", fallback)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Stellar network
    stellar_network: str = Field(
        default="TESTNET",
        description="Stellar network the marketplace runs against (TESTNET or PUBLIC)",
        validation_alias=AliasChoices("stellar_network", "VITE_STELLAR_NETWORK"),
    )
    horizon_url: str = Field(
        default="https://horizon-testnet.stellar.org",
        description="Horizon server used for account and transaction queries",
        validation_alias=AliasChoices("horizon_url", "VITE_HORIZON_URL"),
    )
    friendbot_url: str = Field(
        default="https://friendbot.stellar.org",
        description="Friendbot endpoint used to fund new testnet accounts",
    )
    ledger_timeout_seconds: int = Field(default=30, description="Horizon request timeout")

    # Identity provider (Web3Auth)
    web3auth_client_id: str = Field(default="", description="Web3Auth client id")
    web3auth_network: str = Field(default="testnet", description="Web3Auth network")
    web3auth_verifier: str = Field(default="galerie-auth", description="Web3Auth JWT verifier name")

    # Adapter lifecycle
    adapter_init_timeout_seconds: float = Field(
        default=15.0,
        gt=0,
        description="Seconds an adapter SDK handshake may take before it counts as failed",
    )
    adapter_max_retries: int = Field(
        default=3,
        ge=0,
        description="Maximum scheduled initialization retries per adapter",
    )
    adapter_retry_base_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        description="Base delay for exponential initialization backoff",
    )
    adapter_precedence: List[str] = Field(
        default_factory=lambda: list(ADAPTER_IDS),
        description="Adapter ids, highest precedence first, used to pick the session identity",
    )
    enabled_adapters: List[str] = Field(
        default_factory=lambda: list(ADAPTER_IDS),
        description="Adapters instantiated at bootstrap",
    )

    # Balance polling
    balance_poll_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Interval between ledger balance queries while connected",
    )

    # Persisted identity record
    identity_store_path: str = Field(
        default="",
        description="JSON file holding persisted identity records (empty keeps them in memory)",
    )

    # MoonPay
    moonpay_api_key: str = Field(default="", description="MoonPay publishable key")
    moonpay_secret_key: str = Field(default="", description="MoonPay secret key used for URL signing")
    moonpay_webhook_secret: str = Field(default="", description="MoonPay webhook signing secret")
    moonpay_environment: str = Field(default="sandbox", description="MoonPay environment (sandbox or production)")
    moonpay_redirect_url: str = Field(default="", description="URL MoonPay redirects to after checkout")
    default_fiat_currency: str = Field(default="usd", description="Fiat currency for widget purchases")
    default_crypto_currency: str = Field(default="xlm", description="Crypto currency for widget purchases")

    # Price conversion
    coingecko_api_key: str = Field(default="", description="Coingecko API key")
    xlm_usd_fallback_rate: float = Field(
        default=0.11,
        gt=0,
        description="XLM/USD rate used when Coingecko is unavailable",
    )

    # Pinata / IPFS
    pinata_api_key: str = Field(default="", description="Pinata API key")
    pinata_secret_api_key: str = Field(default="", description="Pinata secret API key")
    ipfs_gateway_url: str = Field(
        default="https://gateway.pinata.cloud/ipfs/",
        description="Gateway prefix used to build content URLs",
    )
    ipfs_fallback_gateways: List[str] = Field(
        default_factory=lambda: ["https://ipfs.io/ipfs/", "https://dweb.link/ipfs/"],
        description="Public gateways tried in order when the primary gateway cannot serve a pin",
    )

    @field_validator("adapter_precedence", "enabled_adapters")
    @classmethod
    def _check_adapter_ids(cls, value: List[str]) -> List[str]:
        normalized = [item.strip().lower() for item in value]
        unknown = [item for item in normalized if item not in ADAPTER_IDS]
        if unknown:
            raise ValueError(f"Unknown adapter ids: {unknown}")
        if len(set(normalized)) != len(normalized):
            raise ValueError("Adapter ids must not repeat")
        return normalized

    @field_validator("stellar_network")
    @classmethod
    def _check_network(cls, value: str) -> str:
        network = value.strip().upper()
        if network not in {"TESTNET", "PUBLIC"}:
            raise ValueError("stellar_network must be TESTNET or PUBLIC")
        return network

    @property
    def is_testnet(self) -> bool:
        return self.stellar_network == "TESTNET"

    @property
    def network_passphrase(self) -> str:
        return _TESTNET_PASSPHRASE if self.is_testnet else _PUBLIC_PASSPHRASE

    @property
    def has_pinata_keys(self) -> bool:
        return bool(self.pinata_api_key and self.pinata_secret_api_key)

    @property
    def moonpay_widget_base_url(self) -> str:
        if self.moonpay_environment.lower() == "production":
            return "https://buy.moonpay.com"
        return "https://buy-sandbox.moonpay.com"

    def ordered_adapters(self) -> List[str]:
        """Enabled adapter ids, highest precedence first."""
        ranked = [item for item in self.adapter_precedence if item in self.enabled_adapters]
        # Enabled adapters missing from the precedence list rank last, in declaration order.
        ranked.extend(item for item in self.enabled_adapters if item not in ranked)
        return ranked


# Global settings instance
settings = Settings()
