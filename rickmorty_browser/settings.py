from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Upstream (override via env)
    UPSTREAM_BASE_URL: str = "https://rickandmortyapi.com/api"
    REQUEST_TIMEOUT: float = 10.0
    MAX_FETCH_PAGES: int = 100  # hard cap on listing pages walked per fetch-all

    # Server
    PORT: int = 5000

    # Browser sessions
    SESSION_TTL_SECONDS: float = 1800
    SESSION_MAX: int = 256

    class Config:
        env_file = ".env"

settings = Settings()
