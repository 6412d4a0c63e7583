from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql://flow_user:flow_password@db:5432/flow_db"
    # Recreating tables on every start is for local experiments only
    RESET_DATABASE: bool = False
    SQL_ECHO: bool = False

    SECRET_KEY: str = "SECRET_KEY_FOR_FITNESS_FLOW"
    REFRESH_SECRET_KEY: str = "SECRET_KEY_FOR_FITNESS_FLOW_refresh"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:9002",
    ]

    # Live workout sessions
    LIVE_STORE_BACKEND: str = "redis"  # "redis" | "memory"
    REDIS_URL: str = "redis://redis:6379/0"
    LIVE_HEARTBEAT_SECONDS: float = 15.0
    TIMER_COUNTDOWN_TICKS: int = 5
    TIMER_TICK_SECONDS: float = 1.0

    TRIAL_DAYS: int = 14

    # AI routine generation (Groq, OpenAI-compatible)
    GROQ_API_KEY: str = ""
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1/chat/completions"
    GROQ_MODEL: str = "llama-3.3-70b-versatile"

    # Billing
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"
    STRIPE_TRAINER_PRICE_ID: str = ""
    STRIPE_STUDIO_PRICE_ID: str = ""
    STRIPE_GYM_PRICE_ID: str = ""
    APP_URL: str = "http://localhost:9002"

    # Contact form mail
    SMTP_HOST: str = "smtp.zoho.com"
    SMTP_PORT: int = 465
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    CONTACT_RECIPIENT: str = ""

    # Object storage for gym logos
    MINIO_ENDPOINT: str = "minio:9000"
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_BUCKET: str = "fitness-flow"
    MINIO_PUBLIC_URL: str = "http://localhost:9000"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"


settings = Settings()
