from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, PostgresDsn

from .prefect_secrets import env_or_prefect_secret

load_dotenv()


class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "Alchemix User Earnings Indexer"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database Settings
    # Optional so imports don't fail where the DB url is only available at
    # runtime (e.g. Prefect-managed execution).
    DATABASE_URL: PostgresDsn | None = Field(
        env_or_prefect_secret("DATABASE_URL", "database-url"),
        alias="DATABASE_URL",
    )

    # RPC endpoints, one per indexed network
    MAINNET_RPC_URL: str | None = None
    ARBITRUM_RPC_URL: str | None = None
    OPTIMISM_RPC_URL: str | None = None
    RPC_REQUEST_TIMEOUT_SECONDS: int = 30

    # Indexing
    LOG_BLOCK_RANGE: int = 2_000
    MULTICALL_BATCH_SIZE: int = 500
    CONFIRMATIONS: int = 0
    MULTICALL3_ADDRESS: str = "0xcA11bde05977b3631167028862bE2a173976CA11"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


# Singleton instance to be imported across the app
settings = Settings()
