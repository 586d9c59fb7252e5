from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    LOG_LEVEL: str = "INFO"
    MAX_PEDIGREE_SIZE: int = 500
    MAX_MARKERS: int = 50000
    MAX_POPULATION_SIZE: int = 20000
    MAX_GENERATIONS: int = 200
    DEFAULT_SEED: int = 42
    COMPARISON_WORKERS: int = 3
    STRICT_PEDIGREE: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'

settings = Settings()
