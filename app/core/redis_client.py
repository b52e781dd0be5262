"""
Redis 클라이언트 (Singleton)

프로필(female/male)별 카탈로그 저장용 Redis 클라이언트
"""

from __future__ import annotations

import json
import logging

import redis

from app.config import get_settings

logger = logging.getLogger(__name__)

CATALOGUE_KEY_PREFIX = "catalogue:"


class RedisClient:
    """Redis 클라이언트 래퍼"""

    def __init__(self: RedisClient) -> None:
        settings = get_settings()
        self.client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            db=settings.redis_db,
            password=settings.redis_password,
            decode_responses=True,  # 자동으로 bytes를 str로 변환
            max_connections=settings.redis_max_connections,
        )

    def get_catalogue(self: RedisClient, profile: str) -> dict[str, list] | None:
        """
        프로필의 카탈로그 조회

        Args:
            profile: 카탈로그 프로필 (female/male)

        Returns:
            카테고리 -> 아이템 목록, 저장된 적 없으면 None
        """
        key = f"{CATALOGUE_KEY_PREFIX}{profile}"
        data = self.client.get(key)
        if data:
            return json.loads(data)
        return None

    def set_catalogue(self: RedisClient, profile: str, data: dict[str, list]) -> None:
        """
        프로필의 카탈로그 저장 (만료 없음)

        Args:
            profile: 카탈로그 프로필
            data: 카테고리 -> 아이템 목록
        """
        key = f"{CATALOGUE_KEY_PREFIX}{profile}"
        self.client.set(key, json.dumps(data))
        logger.debug(f"Redis SET: {key}")

    def clear_catalogues(self: RedisClient) -> int:
        """
        모든 프로필의 카탈로그 삭제

        Returns:
            삭제된 키 개수
        """
        keys = list(self.client.scan_iter(match=f"{CATALOGUE_KEY_PREFIX}*"))
        if not keys:
            return 0
        return self.client.delete(*keys)

    def ping(self: RedisClient) -> bool:
        """
        Redis 연결 확인

        Returns:
            연결 성공 여부
        """
        try:
            return self.client.ping()
        except Exception as e:
            logger.error(f"Redis ping 실패: {e}")
            return False


# 싱글톤 인스턴스
_redis_client: RedisClient | None = None


def get_redis_client() -> RedisClient:
    """Redis 클라이언트 싱글톤 가져오기"""
    global _redis_client
    if _redis_client is None:
        _redis_client = RedisClient()
    return _redis_client
