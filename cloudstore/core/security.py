from datetime import timedelta
from typing import Optional

from jose import JWTError, jwt
from pydantic import ValidationError

from cloudstore.core.config import settings
from cloudstore.core.exceptions import CredentialsException
from cloudstore.schemas.token import TokenPayload
from cloudstore.utils.datetime import now_utc

ALGORITHM = "HS256"


def create_access_token(
    tenant_id: int, expires_delta: Optional[timedelta] = None
) -> str:
    """
    为租户签发访问令牌

    登录与凭证校验由外部认证服务负责，此函数供该服务和本地调试使用
    """
    expire = now_utc() + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"sub": str(tenant_id), "exp": int(expire.timestamp())}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_tenant_id(token: str) -> int:
    """
    解析令牌并返回租户ID
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
        token_data = TokenPayload(**payload)
    except (JWTError, ValidationError):
        raise CredentialsException()

    if token_data.sub is None:
        raise CredentialsException()
    return token_data.sub
