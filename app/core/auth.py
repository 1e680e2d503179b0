# app/core/auth.py

from typing import Optional, Dict, Any, Annotated

from fastapi import Header, HTTPException, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from supabase import create_client

from app.api.models.user import UserOut
from app.core.logging import logger
from app.core.settings import Settings, get_settings

# Bearer para integrarse con Swagger Authorize
_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# -------------------------
# Helpers
# -------------------------
def _decode_jwt_hs256(token: str, settings: Settings) -> Dict[str, Any]:
    if not settings.supabase_jwt_secret:
        # Para HS256, este secreto es indispensable
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="[HS256] SUPABASE_JWT_SECRET not configured",
        )

    # 1) Verifica header
    try:
        header = jwt.get_unverified_header(token)
    except jwt.PyJWTError as e:
        raise _unauthorized(f"[JWT] Invalid header: {e}")

    alg = header.get("alg")
    if alg != "HS256":
        raise _unauthorized(f"[HS256-mode] Token alg={alg}. Use an HS256 token issued by this project.")

    # 2) Valida firma/claims con HS256; el emisor es siempre el Auth de este proyecto
    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.supabase_aud,
            issuer=f"{settings.supabase_url}/auth/v1",
            options={"require": ["exp", "sub", "iss"]},
        )
    except jwt.PyJWTError as e:
        raise _unauthorized(f"[HS256] Invalid token: {e}")


def _get_token_from_bearer(credentials: Optional[HTTPAuthorizationCredentials]) -> str:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing or invalid Authorization header")
    return credentials.credentials


# -------------------------
# Dependencias publicas (para routers)
# -------------------------
async def get_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Security(_bearer)],
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> str:
    """
    Devuelve el 'sub' del JWT (user_id), dueno de los recordatorios.
    - En DEV, permite X-User-Id cuando ALLOW_DEV_HEADER=1.
    - En PROD, valida Bearer HS256 con SUPABASE_JWT_SECRET.
    """
    settings = get_settings()
    if settings.allow_dev_header and x_user_id:
        return x_user_id

    token = _get_token_from_bearer(credentials)
    payload = _decode_jwt_hs256(token, settings)
    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Token payload missing 'sub'")
    return user_id


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Security(_bearer)],
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> UserOut:
    """
    Como get_user_id, pero agrega el email real desde Supabase Auth cuando se puede.
    """
    settings = get_settings()
    if settings.allow_dev_header and x_user_id:
        return UserOut(id=x_user_id, email="dev@example.com")

    token = _get_token_from_bearer(credentials)
    payload = _decode_jwt_hs256(token, settings)
    user_id = payload.get("sub")
    if not user_id:
        raise _unauthorized("Token payload missing 'sub'")

    email = payload.get("email")
    if not email and settings.supabase_url and settings.supabase_key:
        try:
            res = create_client(settings.supabase_url, settings.supabase_key).auth.get_user(token)
            user = res.user if res else None
            email = getattr(user, "email", None) or (getattr(user, "user_metadata", {}) or {}).get("email")
        except Exception as e:
            # El email es informativo; el token ya fue validado
            logger.warning("Cannot fetch email for user %s: %s", user_id, e)

    return UserOut(id=user_id, email=email or None)
