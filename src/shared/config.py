from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    APP_NAME: str = "TLS Identity"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Server identity (PKCS#12 keystore)
    KEYSTORE_PATH: str = ""
    KEYSTORE_PASSWORD: SecretStr = SecretStr("")

    # Trust bundle for client verification (empty = platform trust store)
    CA_BUNDLE_PATH: str = ""


settings = Settings()
