from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, PostgresDsn, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CustomSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


class AppSettings(CustomSettings):
    ENVIRONMENT: Literal["local", "dev", "prod"] = Field(default="local")
    LOG_LEVEL: str = Field(default="INFO")
    JSON_LOGS: bool = Field(default=True)


class PgDbSettings(CustomSettings):
    POSTGRES_ENGINE: str = Field(default="postgresql+asyncpg")
    POSTGRES_USER: str = Field(default="postgres")
    POSTGRES_PASSWORD: SecretStr = Field(default="postgres")
    POSTGRES_DB: str = Field(default="records")
    POSTGRES_HOST: str = Field(default="localhost")
    POSTGRES_PORT: int = Field(default=5432)
    DATABASE_URL: PostgresDsn | str = Field(default="")

    @model_validator(mode="before")
    def validate_postgres_dsn(cls, data: dict):
        if isinstance(data, dict) and not data.get("DATABASE_URL"):
            password = data.get("POSTGRES_PASSWORD", "postgres")
            if isinstance(password, SecretStr):
                password = password.get_secret_value()
            _built_uri = PostgresDsn.build(
                scheme=data.get("POSTGRES_ENGINE", "postgresql+asyncpg"),
                username=data.get("POSTGRES_USER", "postgres"),
                password=password,
                host=data.get("POSTGRES_HOST", "localhost"),
                port=int(data.get("POSTGRES_PORT", 5432)),
                path=data.get("POSTGRES_DB", "records"),
            ).unicode_string()
            data["DATABASE_URL"] = _built_uri
        return data


class OpenAISettings(CustomSettings):
    """Configuration for the generative model used to phrase answers.

    Env vars:
    - OPENAI_API_KEY (empty disables the model; answers use the fallback)
    - USE_OPENAI
    - OPENAI_MODEL
    - OPENAI_TEMPERATURE
    - OPENAI_TIMEOUT_SECONDS
    - OPENAI_UNIT_PRICE_IN_USD / OPENAI_UNIT_PRICE_OUT_USD
    """

    OPENAI_API_KEY: SecretStr = Field(default="")
    USE_OPENAI: bool = Field(default=True)
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")
    OPENAI_TEMPERATURE: float = Field(default=0.2)
    OPENAI_TIMEOUT_SECONDS: float = Field(default=20.0)
    OPENAI_UNIT_PRICE_IN_USD: float = Field(default=0.00000015)
    OPENAI_UNIT_PRICE_OUT_USD: float = Field(default=0.0000006)


class ChatbotSettings(CustomSettings):
    """Configuration for the records assistant query pipeline.

    Set via env vars (optional):
    - CHATBOT_CONTEXT_CACHE_TTL_SECONDS
    - CHATBOT_HISTORY_TURNS
    - CHATBOT_PERSIST_GREETINGS
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    CONTEXT_CACHE_TTL_SECONDS: int = Field(
        default=1800, alias="CHATBOT_CONTEXT_CACHE_TTL_SECONDS"
    )
    HISTORY_TURNS: int = Field(default=5, alias="CHATBOT_HISTORY_TURNS")
    PERSIST_GREETINGS: bool = Field(default=False, alias="CHATBOT_PERSIST_GREETINGS")


class Settings(BaseModel):
    APP: AppSettings = Field(default_factory=AppSettings)
    DATABASE: PgDbSettings = Field(default_factory=PgDbSettings)
    OPENAI: OpenAISettings = Field(default_factory=OpenAISettings)
    CHATBOT: ChatbotSettings = Field(default_factory=ChatbotSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()


SETTINGS = get_settings()
