"""
의류 이미지 카테고리 분류 대기열

분류 API는 rate limit이 있어서 한 번에 한 파일씩 순차 처리하고,
매 분류 호출 후(성공/실패 무관) 고정 쿨다운만큼 기다립니다.
별도 업로드로 들어온 배치도 같은 lock을 거치므로 쿨다운 간격이 유지됩니다.

작업 상태: PENDING -> CLASSIFYING -> DONE | FAILED
- DONE: 카탈로그에 추가되고 표시 목록에서 제거
- FAILED: 에러 메시지와 함께 남아 있음 (dismiss / retry 대상)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import PurePath

from app.catalogue.exceptions import TaskNotFoundError, TaskNotRetryableError
from app.catalogue.repository import CatalogueRepository, get_catalogue_repository
from app.catalogue.schemas import (
    CatalogueItem,
    ClassificationStatus,
    ClassificationTask,
    Profile,
)
from app.config import get_settings
from app.core.exceptions import StorageError
from app.core.image_utils import ReadError, load_image
from app.core.storage import S3Storage, get_storage
from app.studio.error_normalizer import normalize_error
from app.studio.exceptions import ValidationError
from app.studio.genai_client import GeminiClient, GenerativeClient

logger = logging.getLogger(__name__)

DEFAULT_ITEM_NAME = "Style Item"


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    data: bytes
    content_type: str | None = None


def display_name(filename: str) -> str:
    """확장자를 뗀 파일 이름, 비어 있으면 기본 이름"""
    if "." not in filename:
        return DEFAULT_ITEM_NAME
    return PurePath(filename).name.rsplit(".", 1)[0] or DEFAULT_ITEM_NAME


class ClassificationQueue:
    def __init__(
        self: "ClassificationQueue",
        client: GenerativeClient,
        repository: CatalogueRepository,
        storage: S3Storage,
        cooldown_seconds: float,
    ) -> None:
        self.client = client
        self.repository = repository
        self.storage = storage
        self.cooldown_seconds = cooldown_seconds
        self._tasks: dict[str, ClassificationTask] = {}
        self._files: dict[str, UploadedFile] = {}
        self._lock = asyncio.Lock()

    async def submit(
        self, profile: Profile, files: list[UploadedFile]
    ) -> list[ClassificationTask]:
        """파일을 PENDING 작업으로 등록하고 미리보기 URL을 만든다"""
        submitted = []
        for file in files:
            task_id = uuid.uuid4().hex
            task = ClassificationTask(id=task_id, name=file.filename, profile=profile)
            self._tasks[task_id] = task
            self._files[task_id] = file

            try:
                task.preview_url = await asyncio.to_thread(
                    self.storage.upload_bytes,
                    file.data,
                    f"catalogue/previews/{task_id}/{PurePath(file.filename).name}",
                    file.content_type or "application/octet-stream",
                )
            except StorageError as e:
                logger.warning(f"미리보기 업로드 실패: task_id={task_id}, error={e}")
                task.status = ClassificationStatus.FAILED
                task.error = normalize_error(e).message

            submitted.append(task)

        logger.info(f"분류 작업 등록: profile={profile.value}, count={len(submitted)}")
        return submitted

    async def process(self: "ClassificationQueue", task_ids: list[str]) -> None:
        """제출 순서대로 하나씩 분류 (한 파일 실패가 배치를 멈추지 않음)"""
        async with self._lock:
            for task_id in task_ids:
                task = self._tasks.get(task_id)
                if task is None or task.status != ClassificationStatus.PENDING:
                    continue

                await self._classify(task)
                await asyncio.sleep(self.cooldown_seconds)

    async def _classify(self: "ClassificationQueue", task: ClassificationTask) -> None:
        task.status = ClassificationStatus.CLASSIFYING
        file = self._files[task.id]

        try:
            image = load_image(file.data, file.filename, file.content_type)
            if isinstance(image, ReadError):
                raise ValidationError(message=image.message)

            category = await self.client.classify_garment(image)

            image.url = task.preview_url
            item = CatalogueItem(id=task.id, name=display_name(file.filename), image=image)
            await asyncio.to_thread(self.repository.add_item, task.profile, category, item)

        except Exception as e:
            error = normalize_error(e)
            task.status = ClassificationStatus.FAILED
            task.error = error.message
            logger.error(
                f"분류 실패: task_id={task.id}, file={file.filename}, "
                f"category={error.category.value}, detail={error.detail}"
            )
            return

        task.status = ClassificationStatus.DONE
        task.category = category
        self._tasks.pop(task.id, None)
        self._files.pop(task.id, None)
        logger.info(f"분류 완료: task_id={task.id}, category={category.value}")

    def tasks(self: "ClassificationQueue") -> list[ClassificationTask]:
        """표시 중인 작업 (DONE은 이미 제거됨)"""
        return [t for t in self._tasks.values() if t.status != ClassificationStatus.DONE]

    def get(self: "ClassificationQueue", task_id: str) -> ClassificationTask:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(f"Classification task not found: {task_id}")
        return task

    def dismiss(self: "ClassificationQueue", task_id: str) -> None:
        task = self.get(task_id)
        if task.status in (ClassificationStatus.PENDING, ClassificationStatus.CLASSIFYING):
            raise TaskNotRetryableError(f"Task {task_id} is still in progress")
        self._tasks.pop(task_id, None)
        self._files.pop(task_id, None)

    def retry(self: "ClassificationQueue", task_id: str) -> ClassificationTask:
        """FAILED 작업을 PENDING으로 되돌린다 (process로 다시 실행)"""
        task = self.get(task_id)
        if task.status != ClassificationStatus.FAILED:
            raise TaskNotRetryableError(f"Only failed tasks can be retried: {task_id}")
        task.status = ClassificationStatus.PENDING
        task.error = None
        return task

    def clear(self: "ClassificationQueue") -> None:
        self._tasks.clear()
        self._files.clear()


_queue_instance: ClassificationQueue | None = None


def get_classification_queue() -> ClassificationQueue:
    global _queue_instance
    if _queue_instance is None:
        _queue_instance = ClassificationQueue(
            client=GeminiClient(),
            repository=get_catalogue_repository(),
            storage=get_storage(),
            cooldown_seconds=get_settings().classification_cooldown_seconds,
        )
    return _queue_instance
