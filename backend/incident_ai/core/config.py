from dataclasses import dataclass

from pydantic_settings import BaseSettings
from pydantic import Field


@dataclass(frozen=True)
class ModelConfig:
    """
    Explicit connection settings for the model collaborator.
    Built once from Settings and handed to the client/service at construction.
    """
    api_key: str
    base_url: str
    model: str
    timeout: float = 30.0
    temperature: float = 0.1
    max_tokens: int = 4000

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key and self.api_key.strip())


class Settings(BaseSettings):
    # App Config
    APP_NAME: str = "Incident Response AI Analysis"
    APP_ENV: str = "development"
    PORT: int = 8000
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # NVIDIA NIM (chat completions)
    NVIDIA_API_KEY: str = Field(default="")
    NIM_BASE_URL: str = Field(default="https://integrate.api.nvidia.com")
    NIM_MODEL: str = Field(default="meta/llama-3.1-70b-instruct")
    NIM_TIMEOUT_SECONDS: float = Field(default=30.0)
    NIM_TEMPERATURE: float = Field(default=0.1)
    NIM_MAX_TOKENS: int = Field(default=4000)

    # Analysis behaviour
    ANALYSIS_DEMO_MODE: bool = Field(default=False)
    ANALYSIS_DEMO_LATENCY_SECONDS: float = Field(default=0.0)
    ANALYSIS_FAIL_OPEN: bool = Field(default=True)

    class Config:
        env_file = ".env"
        extra = "ignore"

    def model_config_for_analysis(self) -> ModelConfig:
        return ModelConfig(
            api_key=self.NVIDIA_API_KEY,
            base_url=self.NIM_BASE_URL.rstrip("/"),
            model=self.NIM_MODEL,
            timeout=self.NIM_TIMEOUT_SECONDS,
            temperature=self.NIM_TEMPERATURE,
            max_tokens=self.NIM_MAX_TOKENS,
        )


settings = Settings()
