"""Configuration for nav-telemetry."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="NAV_TELEMETRY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    service_name: str = "nav-telemetry"
    sdk_version: str = "0.1.0"
    uses_default_user_interface: bool = False
    sdk_identifier_ui: str = "navigation-ui-python"
    sdk_identifier_core: str = "navigation-python"
    log_level: str = "INFO"
    polyline_precision: int = 5

    @property
    def sdk_identifier(self) -> str:
        return self.sdk_identifier_ui if self.uses_default_user_interface else self.sdk_identifier_core


settings = Settings()
