from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Ledger gateway (record contract reads/writes)
    LEDGER_GATEWAY_URL: str = "http://localhost:8545"
    LEDGER_API_TOKEN: str | None = None
    RECORD_CONTRACT_ADDRESS: str | None = None

    # Confidential compute relayer (encrypt / public decryption)
    RELAYER_URL: str = "http://localhost:7077"
    RELAYER_API_KEY: str | None = None

    # Session tokens issued by the wallet login flow
    SESSION_JWT_SECRET: str | None = None
    SESSION_JWT_AUDIENCE: str = "authenticated"

    # =================================================================
    # NETWORK SETTINGS
    # =================================================================
    REQUEST_TIMEOUT: float = 30.0
    MAX_RETRIES: int = 3
    BACKOFF_FACTOR: float = 0.5
    CONFIRMATION_TIMEOUT: float = 120.0
    CONFIRMATION_POLL_INTERVAL: float = 2.0

    # =================================================================
    # CHECK POLICY
    # =================================================================
    PASS_THRESHOLD: int = 70
    SCORE_MIN: int = 0
    SCORE_MAX: int = 100

    # Transaction status display windows
    STATUS_SUCCESS_CLEAR_SECONDS: float = 2.0
    STATUS_ERROR_CLEAR_SECONDS: float = 3.0

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def ledger_base_url(self) -> str:
        return self.LEDGER_GATEWAY_URL.rstrip("/")

    def relayer_base_url(self) -> str:
        return self.RELAYER_URL.rstrip("/")

    def get_http_config(self) -> dict:
        """
        Get HTTP client configuration for the ledger and relayer clients.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "timeout": self.REQUEST_TIMEOUT,
            "max_retries": self.MAX_RETRIES,
            "backoff_factor": self.BACKOFF_FACTOR,
        }

        if self.environment == "development":
            # Local nodes answer quickly; fail fast instead of hanging
            config.update({"timeout": min(self.REQUEST_TIMEOUT, 15.0)})

        return config


settings = Settings()
