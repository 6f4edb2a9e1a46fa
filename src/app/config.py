"""Configuration management using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "IoT Security Lab"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 5050
    cors_origins: list[str] = ["http://localhost:5173"]  # Vite dev server

    # Simulation engine
    simulation_device_count: int = 5
    simulation_tick_interval_ms: int = 500
    simulation_autostart: bool = False  # start ticking as soon as the server is up

    # WebSocket push
    state_push_interval: float = 1.0  # seconds between full-state pushes


settings = Settings()
