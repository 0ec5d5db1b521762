"""
令牌服务 - 校验身份提供方签发的访问令牌

本服务不签发登录令牌；create_access_token 供运维脚本与测试生成令牌。
claims: sub（用户ID）、role、email、exp
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from core.config import settings
from core.exceptions import TokenExpiredException, UnauthorizedException
from core.logging_config import get_logger
from domain.security.policy import ROLE_ACTIONS, Role, Subject


logger = get_logger(__name__)


class TokenService:
    def __init__(self, secret_key: Optional[str] = None, algorithm: Optional[str] = None):
        self._secret_key = secret_key or settings.SECRET_KEY
        self._algorithm = algorithm or settings.ALGORITHM

    def create_access_token(
        self,
        user_id: str,
        *,
        role: str = Role.CUSTOMER.value,
        email: Optional[str] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        to_encode = {"sub": str(user_id), "role": role, "exp": expire, "type": "access"}
        if email:
            to_encode["email"] = email
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str) -> Subject:
        """解码令牌并返回调用主体；无效或过期时抛出 401 类异常"""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            raise TokenExpiredException()
        except jwt.PyJWTError as e:
            logger.warning("invalid_access_token", error=str(e))
            raise UnauthorizedException("Invalid authentication credentials")

        user_id = payload.get("sub")
        if not user_id:
            raise UnauthorizedException("Token subject missing")

        role = str(payload.get("role") or Role.CUSTOMER.value).lower()
        if role not in ROLE_ACTIONS:
            # 未知角色按普通客户处理
            logger.info("token_role_unknown", role=role, user_id=user_id)
            role = Role.CUSTOMER.value
        return Subject(user_id=str(user_id), role=role, email=payload.get("email"))
