# report_service/utils.py

from firebase_admin import auth
from cachetools import TTLCache
from datetime import timedelta
from fastapi import Header, HTTPException, status
import logging

logger = logging.getLogger(__name__)

# 토큰 검증 결과를 캐시하기 위한 TTLCache 설정
# 최대 1000개의 항목을 저장하고, 각 항목은 5분 동안 유효
token_cache = TTLCache(maxsize=1000, ttl=timedelta(minutes=5).total_seconds())


async def verify_token(token: str):
    if token in token_cache:
        return token_cache[token]

    try:
        decoded_token = auth.verify_id_token(token)
        # 캐시에 검증된 토큰 정보 저장
        token_cache[token] = decoded_token
        return decoded_token
    except Exception as e:
        logger.error(f"Token verification failed: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(authorization: str = Header(None)):
    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header is missing")

    # Remove 'Bearer ' prefix if present
    token = authorization[7:] if authorization.startswith('Bearer ') else authorization

    decoded_token = await verify_token(token)
    uid = decoded_token.get("uid")
    if uid is None:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    logger.debug(f"Authenticated user {uid}")
    return {"uid": uid, "email": decoded_token.get("email")}
