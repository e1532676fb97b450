# notification_client/security/jwt_utils.py
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

import jwt

# si no hay secreto configurado el servidor no pide auth y no mandamos header
JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALG = os.getenv("JWT_ALG", "HS256")
JWT_TTL_MINUTES = int(os.getenv("JWT_TTL_MINUTES", "60"))


def issue_token(user_id: str, secret: Optional[str] = None, ttl_minutes: Optional[int] = None) -> str:
    """
    Firma un JWT con `sub` = user_id, que es lo que el servicio de
    notificaciones compara contra el usuario de la ruta.
    """
    secret = secret or JWT_SECRET
    if not secret:
        raise RuntimeError("JWT_SECRET no está configurada")

    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=ttl_minutes or JWT_TTL_MINUTES),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALG)


def auth_headers(user_id: Optional[str], secret: Optional[str] = None) -> Dict[str, str]:
    """
    Header Authorization: Bearer <token> para el usuario activo.
    Devuelve {} si no hay usuario o no hay secreto.
    """
    secret = secret or JWT_SECRET
    if not user_id or not secret:
        return {}
    return {"Authorization": f"Bearer {issue_token(user_id, secret)}"}
