# app/core/supabase_client.py

from typing import Optional

from fastapi import HTTPException, Request, status
from supabase import create_client, Client

from app.core.settings import get_settings


def _extract_bearer_token(request: Request) -> Optional[str]:
    """
    Extrae 'Bearer <token>' del Authorization header, si existe.
    """
    auth = request.headers.get("Authorization") or request.headers.get("authorization")
    if not auth:
        return None
    parts = auth.split(" ", 1)
    if len(parts) != 2:
        return None
    scheme, token = parts[0], parts[1]
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def get_supabase_for_request(request: Request) -> Client:
    """
    Devuelve un cliente de Supabase nuevo, autorizado con el token del request
    para que PostgREST aplique RLS con el usuario. Un cliente por request evita
    compartir estado de auth entre peticiones.
    """
    settings = get_settings()
    if not settings.supabase_url or not settings.supabase_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="SUPABASE_URL/SUPABASE_KEY not configured",
        )

    sb = create_client(settings.supabase_url, settings.supabase_key)

    token = _extract_bearer_token(request)
    if token:
        # supabase-py v2: autorizar PostgREST (RLS) con el token del usuario
        sb.postgrest.auth(token)

    return sb
