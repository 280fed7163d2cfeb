from pydantic_settings import BaseSettings
from pydantic import Field
import urllib.parse

class Settings(BaseSettings):
    PROJECT_NAME: str = "InchForward"
    API_V1_STR: str = "/api/v1"

    DATABASE_URL: str = Field("sqlite+aiosqlite:///./inchforward.db")

    GROQ_API_KEY: str = Field(...)
    GROQ_BASE_URL: str = "https://api.groq.com/openai/v1"
    AI_MODEL: str = "llama-3.3-70b-versatile"
    AI_TIMEOUT_SECONDS: float = 30.0

    # Moves adopted from suggestions get these until the user edits them
    DEFAULT_MOVE_DURATION: float = 300.0
    DEFAULT_POSTPONE_SECONDS: float = 3600.0

    BACKEND_CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    @property
    def async_database_url(self) -> str:
        if "sqlite" in self.DATABASE_URL:
            if "+aiosqlite" not in self.DATABASE_URL:
                return self.DATABASE_URL.replace("sqlite://", "sqlite+aiosqlite://", 1)
            return self.DATABASE_URL

        url = self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")
        try:
            parsed = urllib.parse.urlparse(url)
            query_params = urllib.parse.parse_qs(parsed.query)
            params_to_remove = ['sslmode', 'channel_binding']
            for param in params_to_remove:
                if param in query_params:
                    del query_params[param]
            new_query = urllib.parse.urlencode(query_params, doseq=True)
            url = urllib.parse.urlunparse(parsed._replace(query=new_query))
        except ValueError:
            url = url.replace("?sslmode=require", "").replace("&sslmode=require", "")
            url = url.replace("?channel_binding=require", "").replace("&channel_binding=require", "")

        return url

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
