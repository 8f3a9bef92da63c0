from pydantic_settings import BaseSettings
from pydantic import Field
from typing import List, Optional
from pathlib import Path

class Settings(BaseSettings):
    app_name: str = Field(default="Busline API", alias="APP_NAME")
    version: str = Field(default="0.1.0", alias="APP_VERSION")
    env: str = Field(default="dev", alias="ENV")
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    sql_echo: bool = Field(default=False, alias="SQL_ECHO")
    auto_create_tables: bool = Field(default=True, alias="AUTO_CREATE_TABLES")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # Tokens are issued by the external identity provider; we only verify them.
    jwt_secret: str = Field(default="devsecret", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_audience: Optional[str] = Field(default=None, alias="JWT_AUDIENCE")
    cors_origins_raw: Optional[str] = Field(default=None, alias="CORS_ORIGINS", description="Comma separated or JSON list of allowed CORS origins")
    # Seed profile (dev convenience)
    seed_superadmin_user_id: Optional[str] = Field(default=None, alias="SEED_SUPERADMIN_USER_ID")

    class Config:
        # Load env from the project root regardless of CWD
        env_file = str(Path(__file__).resolve().parents[2] / ".env")
        case_sensitive = False
        extra = "ignore"

    def _parse_list(self, v: Optional[str]) -> List[str]:
        if v is None:
            return []
        s = v.strip()
        if not s:
            return []
        if s.startswith("[") and s.endswith("]"):
            try:
                import json
                loaded = json.loads(s)
                if isinstance(loaded, list):
                    return [str(e).strip() for e in loaded if str(e).strip()]
            except ValueError:
                pass
        return [e.strip() for e in s.split(",") if e.strip()]

    @property
    def cors_origins(self) -> List[str]:
        items = self._parse_list(self.cors_origins_raw)
        if not items:
            return ["http://localhost:3000", "http://127.0.0.1:3000"]
        return items

settings = Settings()  # type: ignore
