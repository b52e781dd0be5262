from __future__ import annotations

import base64
import io
import os
from collections.abc import Callable, Generator
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from PIL import Image
from pytest_mock import MockerFixture

from app.catalogue.repository import CatalogueRepository
from app.catalogue.schemas import CatalogueItem
from app.common.schemas import ImageData
from app.core.redis_client import RedisClient
from app.core.storage import S3Storage
from app.main import app
from app.studio.credentials import InMemoryCredentialGate
from app.studio.genai_client import GenerativeClient
from app.studio.orchestrator import GenerationOrchestrator
from app.studio.poller import OperationPoller


# ============================================================
# 🔧 환경변수 설정 (가장 먼저 실행)
# ============================================================
@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    테스트 환경변수 설정
    - CI: GitHub Actions의 env 사용
    - 로컬: 테스트용 기본값 사용
    """
    test_env = {
        "APP_ENV": os.getenv("APP_ENV", "ci"),
        "DEBUG": os.getenv("DEBUG", "False"),
        # Redis 설정
        "REDIS_HOST": os.getenv("REDIS_HOST", "localhost"),
        "REDIS_PORT": os.getenv("REDIS_PORT", "6380"),
        "REDIS_DB": os.getenv("REDIS_DB", "0"),
        # Generative service
        "GEMINI_API_KEY": os.getenv("GEMINI_API_KEY", "test_gemini_key"),
        "CLASSIFICATION_COOLDOWN_SECONDS": "0",
        "VIDEO_POLL_INTERVAL_SECONDS": "0",
        "VIDEO_POLL_TIMEOUT_SECONDS": "5",
        # Storage
        "AWS_ACCESS_KEY_ID": os.getenv("AWS_ACCESS_KEY_ID", "test_access_key"),
        "AWS_SECRET_ACCESS_KEY": os.getenv("AWS_SECRET_ACCESS_KEY", "test_secret_key"),
        "S3_BUCKET_NAME": "test-bucket",
    }

    os.environ.update(test_env)

    # Settings 캐시 클리어 (중요!)
    from app.config import get_settings

    get_settings.cache_clear()

    yield

    get_settings.cache_clear()


# ============================================================
# 외부 클라이언트 Mock
# ============================================================


@pytest.fixture(autouse=True)
def mock_redis_client(mocker: MockerFixture) -> MagicMock:
    """In-memory 카탈로그 저장소를 가진 Redis 클라이언트 Mock"""
    catalogue_store: dict[str, dict[str, list]] = {}

    mock_redis = MagicMock(spec=RedisClient)

    def mock_get_catalogue(profile: str) -> dict[str, list] | None:
        return catalogue_store.get(profile)

    def mock_set_catalogue(profile: str, data: dict[str, list]) -> None:
        catalogue_store[profile] = data

    def mock_clear_catalogues() -> int:
        count = len(catalogue_store)
        catalogue_store.clear()
        return count

    mock_redis.get_catalogue.side_effect = mock_get_catalogue
    mock_redis.set_catalogue.side_effect = mock_set_catalogue
    mock_redis.clear_catalogues.side_effect = mock_clear_catalogues
    mock_redis.ping.return_value = True
    mock_redis.store = catalogue_store

    mocker.patch("app.catalogue.repository.get_redis_client", return_value=mock_redis)
    mocker.patch("app.main.get_redis_client", return_value=mock_redis)
    return mock_redis


@pytest.fixture(autouse=True)
def mock_storage(mocker: MockerFixture) -> MagicMock:
    """S3 업로드 Mock (object key로 URL 생성)"""
    storage = MagicMock(spec=S3Storage)
    storage.upload_bytes.side_effect = (
        lambda data, object_key, content_type="image/png": f"https://test-bucket.s3/{object_key}"
    )
    mocker.patch("app.core.storage._storage_instance", storage)
    return storage


@pytest.fixture(autouse=True)
def reset_singletons(mocker: MockerFixture) -> None:
    from app.catalogue.repository import get_catalogue_repository
    from app.studio.credentials import get_credential_gate

    mocker.patch("app.studio.orchestrator._orchestrator_instance", None)
    mocker.patch("app.catalogue.classification_queue._queue_instance", None)
    get_catalogue_repository.cache_clear()
    get_credential_gate.cache_clear()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ============================================================
# 도메인 Fixtures
# ============================================================


@pytest.fixture
def png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (4, 4), color=(200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def make_item(png_bytes: bytes) -> Callable[..., CatalogueItem]:
    def _make(item_id: str, placeholder: bool = False) -> CatalogueItem:
        payload = "" if placeholder else base64.b64encode(png_bytes).decode("ascii")
        return CatalogueItem(
            id=item_id,
            name=f"item-{item_id}",
            image=ImageData(base64=payload, mime_type="image/png", name=f"{item_id}.png"),
        )

    return _make


@pytest.fixture
def result_image(png_bytes: bytes) -> ImageData:
    return ImageData(base64=base64.b64encode(png_bytes).decode("ascii"), mime_type="image/png")


@pytest.fixture
def fake_genai() -> MagicMock:
    """GenerativeClient Mock (async 메서드는 AsyncMock으로 자동 설정)"""
    fake = MagicMock(spec=GenerativeClient)
    fake.with_api_key.return_value = fake
    return fake


@pytest.fixture
def repository(mock_redis_client: MagicMock) -> CatalogueRepository:
    return CatalogueRepository(redis_client=mock_redis_client)


@pytest.fixture
def credential_gate() -> InMemoryCredentialGate:
    return InMemoryCredentialGate()


@pytest.fixture
def orchestrator(
    fake_genai: MagicMock,
    repository: CatalogueRepository,
    mock_storage: MagicMock,
    credential_gate: InMemoryCredentialGate,
) -> GenerationOrchestrator:
    return GenerationOrchestrator(
        client=fake_genai,
        repository=repository,
        storage=mock_storage,
        credentials=credential_gate,
        poller=OperationPoller(fake_genai, interval_seconds=0, timeout_seconds=5),
    )
