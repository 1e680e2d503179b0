# app/core/settings.py

import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel

# Cargar .env si existe (util en VSCode / procesos que no heredan entorno)
load_dotenv()


class Settings(BaseModel):
    supabase_url: str = ""
    supabase_key: str = ""  # anon/public key
    supabase_aud: str = "authenticated"
    supabase_jwt_secret: str = ""  # Legacy JWT secret (HMAC)
    allow_dev_header: bool = False
    cors_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"


def get_settings() -> Settings:
    """
    Lee el entorno SIEMPRE al llamarse (no en import), para que una variable
    faltante falle en la peticion que la necesita y no al importar la app.
    """
    origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")
    return Settings(
        supabase_url=os.getenv("SUPABASE_URL", "").rstrip("/"),
        supabase_key=os.getenv("SUPABASE_KEY", ""),
        supabase_aud=os.getenv("SUPABASE_AUD", "authenticated"),
        supabase_jwt_secret=os.getenv("SUPABASE_JWT_SECRET", ""),
        allow_dev_header=os.getenv("ALLOW_DEV_HEADER", "0") == "1",
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
