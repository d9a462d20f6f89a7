from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Configuración general
    app_name: str = "Agent Portal"
    log_level: str = "INFO"
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:3001",
    ]

    # Configuración de MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "agent_portal"
    mongo_tls: bool = False

    # Tokens de acceso
    secret_key: str = "mysecretkey"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24 * 7  # 1 semana

    # Directorio de la organización (usuarios partner)
    jira_webhook_url: Optional[str] = None

    # Límites de tiempo para llamadas salientes (segundos)
    webhook_connect_timeout: float = 10.0
    webhook_read_timeout: float = 120.0
    link_preview_timeout: float = 5.0

    class Config:
        env_file = ".env"  # Archivo desde donde se cargan las variables


# Instancia global para usar en toda la app
settings = Settings()
