# src/UAA/utils.py
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional

import structlog
from jose import jwt, JWTError

logger = structlog.get_logger(__name__)

# Config (env)
SECRET_KEY = os.getenv("SECRET_KEY", "change_me_now")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _now_ts() -> int:
    return int(_now().timestamp())


# --- JWT helpers ---
def encode_token(claims: Dict[str, Any], token_type: str, expires_delta: timedelta) -> Dict[str, Any]:
    jti = str(uuid.uuid4())
    expire = _now() + expires_delta
    payload = {**claims, "exp": int(expire.timestamp()), "jti": jti, "type": token_type, "iat": _now_ts()}
    token = jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)
    return {"token": token, "jti": jti, "exp": payload["exp"]}


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> Dict[str, Any]:
    """
    Issue a bearer token for subject. Production tokens come from the identity
    provider; this is for local development and tests.
    """
    issued = encode_token({"sub": subject}, "access", expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    logger.debug("create_access_token", sub=subject, jti=issued["jti"], exp=issued["exp"])
    return issued


def decode_token(token: str, expected_type: Optional[str] = None) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        raise
    if expected_type is not None and payload.get("type") != expected_type:
        logger.warning("token_type_mismatch", expected=expected_type, got=payload.get("type"))
        raise JWTError("invalid token type")
    return payload
