from typing import Optional

from pydantic import BaseModel


class TokenPayload(BaseModel):
    """
    JWT 令牌的载荷数据，sub 为租户ID
    """
    sub: Optional[int] = None
    exp: Optional[int] = None
