# hybridfs/config.py
"""
Configuration management using Pydantic Settings.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
    LOG_LEVEL: str = "INFO"
    # Remote workspace provider. Without an API key the provider is skipped.
    WORKSPACE_API_KEY: Optional[str] = None
    WORKSPACE_ID: str = "default"
    WORKSPACE_API_URL: str = "https://api.workspaces.example.com/v1"
    # Embedded runtime provider. Without a root directory the provider is skipped.
    RUNTIME_ROOT: Optional[str] = None
    # Seconds each provider gets to connect before the next one is tried
    PROVIDER_INIT_TIMEOUT: float = Field(8.0, gt=0)
    # Seed the in-memory local store with a minimal project scaffold
    LOCAL_SCAFFOLD: bool = True

settings = Settings()
