from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Mongo: le transazioni (delete a cascata) richiedono un replica set
    mongo_uri: str = "mongodb://localhost:27017/?replicaSet=rs0"
    mongo_db_name: str = "assignment_portal"

    # secondi concessi a ogni operazione sullo store prima di rispondere Transient
    store_timeout: float = 5.0

    # API
    api_prefix: str = "/api/v1"
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
