import logging
from abc import ABC, abstractmethod
from functools import lru_cache

logger = logging.getLogger(__name__)


class CredentialGate(ABC):
    """영상 생성 전에 사용자 API 키 존재 여부를 확인하는 외부 게이트"""

    @abstractmethod
    def has_credential(self: "CredentialGate") -> bool:
        ...

    @abstractmethod
    def request_credential(self: "CredentialGate") -> None:
        """외부 키 선택 흐름 시작"""
        ...

    @abstractmethod
    def select(self: "CredentialGate", api_key: str) -> None:
        ...

    @abstractmethod
    def current_credential(self: "CredentialGate") -> str | None:
        ...

    @abstractmethod
    def invalidate(self: "CredentialGate") -> None:
        """거부된 키 폐기 (다음 영상 생성 시 다시 선택 요청)"""
        ...


class InMemoryCredentialGate(CredentialGate):
    def __init__(self: "InMemoryCredentialGate") -> None:
        self._api_key: str | None = None
        self.selection_requested = False

    def has_credential(self: "InMemoryCredentialGate") -> bool:
        return self._api_key is not None

    def request_credential(self: "InMemoryCredentialGate") -> None:
        self.selection_requested = True
        logger.info("Credential selection requested")

    def select(self: "InMemoryCredentialGate", api_key: str) -> None:
        self._api_key = api_key
        self.selection_requested = False
        logger.info("Credential selected")

    def current_credential(self: "InMemoryCredentialGate") -> str | None:
        return self._api_key

    def invalidate(self: "InMemoryCredentialGate") -> None:
        self._api_key = None
        logger.info("Credential invalidated")


@lru_cache
def get_credential_gate() -> InMemoryCredentialGate:
    return InMemoryCredentialGate()
