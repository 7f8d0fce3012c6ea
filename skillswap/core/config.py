from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

class Settings(BaseSettings):
    app_name: str = "SkillSwap API"
    environment: str = "production"
    debug: bool = False
    api_v1_prefix: str = "/api/v1"
    frontend_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Storage backend: "supabase" or "memory"
    store_backend: str = "supabase"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Tokens are issued by Supabase Auth, we only verify them
    jwt_secret: str = "your-secret-key"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = None
    jwt_expiration_minutes: int = 30

    feedback_edit_window_hours: int = 24

    class Config:
        env_file = ".env"
        extra = "ignore"

@lru_cache()
def get_settings() -> Settings:
    return Settings()
