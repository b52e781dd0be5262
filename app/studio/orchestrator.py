import asyncio
import logging
import time
import uuid

from app.catalogue.classification_queue import ClassificationQueue, get_classification_queue
from app.catalogue.repository import CatalogueRepository, get_catalogue_repository
from app.catalogue.schemas import Category, Profile
from app.common.schemas import ImageData
from app.config import Settings, get_settings
from app.core.exceptions import StorageError
from app.core.image_utils import ReadError, decode_base64, extension_for, load_image
from app.core.storage import S3Storage, get_storage
from app.studio.combinations import generate_outfit_combinations
from app.studio.credentials import CredentialGate, get_credential_gate
from app.studio.error_normalizer import normalize_error
from app.studio.exceptions import (
    CredentialError,
    ErrorCategory,
    GenerationInProgressError,
    ValidationError,
)
from app.studio.genai_client import GeminiClient, GenerativeClient
from app.studio.poller import OperationPoller
from app.studio.schemas import (
    CreativeMode,
    GenerationJob,
    GenerationRequest,
    JobError,
    JobStatus,
    SelectedItemSet,
    StudioState,
    WorkspaceItem,
)

logger = logging.getLogger(__name__)

NO_SELECTION_MESSAGE = "Please select at least one clothing item."
PLACEHOLDER_MESSAGE = "A selected style is a placeholder. Please upload real clothing items."
EMPTY_EDIT_MESSAGE = "Please enter an edit description."
EMPTY_VIDEO_MESSAGE = "Please enter a video description."
NO_PHOTO_MESSAGE = "Please select a photo from the workspace first."
CREDENTIAL_SELECTED_MESSAGE = (
    "API Key selected. Please click 'Generate Video' again to proceed."
)


class GenerationOrchestrator:
    """
    세션 상태(StudioState)를 소유하고 try-on / edit / video 워크플로우를 실행

    - generate 1회 = GenerationJob 1개 (다음 호출 시 교체)
    - try-on: 조합 순서대로 순차 렌더링, 첫 실패에서 중단 (이전 결과는 유지)
    - video: 자격 증명 게이트 확인 후 제출, OperationPoller로 완료 대기
    """

    def __init__(
        self: "GenerationOrchestrator",
        client: GenerativeClient,
        repository: CatalogueRepository,
        storage: S3Storage,
        credentials: CredentialGate,
        queue: ClassificationQueue | None = None,
        poller: OperationPoller | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client
        self.repository = repository
        self.storage = storage
        self.credentials = credentials
        self.queue = queue
        self.poller = poller or OperationPoller(client, settings=self.settings)
        self.state = StudioState()
        self._cancel_event: asyncio.Event | None = None

    # ============================================================
    # 프로필 / 선택
    # ============================================================

    def set_profile(self: "GenerationOrchestrator", profile: Profile) -> StudioState:
        if profile != self.state.profile:
            self.state.profile = profile
            self.state.selection = SelectedItemSet()
            logger.info(f"프로필 변경: {profile.value} (선택 초기화)")
        return self.state

    def update_selection(
        self: "GenerationOrchestrator", selection: dict[Category, list[str]]
    ) -> SelectedItemSet:
        resolved = {}
        for category in Category:
            item_ids = list(dict.fromkeys(selection.get(category, [])))
            items = self.repository.find_items(self.state.profile, category, item_ids)
            if len(items) != len(item_ids):
                found = {item.id for item in items}
                missing = [i for i in item_ids if i not in found]
                raise ValidationError(
                    message=f"Unknown {category.value} item(s): {', '.join(missing)}"
                )
            resolved[category.value] = items

        self.state.selection = SelectedItemSet(**resolved)
        return self.state.selection

    # ============================================================
    # 작업 공간
    # ============================================================

    async def add_photo(
        self: "GenerationOrchestrator",
        data: bytes,
        filename: str,
        content_type: str | None = None,
    ) -> WorkspaceItem:
        image = load_image(data, filename, content_type)
        if isinstance(image, ReadError):
            raise ValidationError(message=image.message)

        item_id = uuid.uuid4().hex
        image.url = await asyncio.to_thread(
            self.storage.upload_bytes,
            data,
            f"workspace/{item_id}.{extension_for(image.mime_type)}",
            image.mime_type,
        )
        item = WorkspaceItem(id=item_id, name=filename, image=image)

        self.state.workspace.insert(0, item)
        self.state.selected_workspace_id = item.id
        if not self._is_running():
            self.state.current_job = None
        return item

    def select_workspace_item(
        self: "GenerationOrchestrator", item_id: str
    ) -> WorkspaceItem:
        for item in self.state.workspace:
            if item.id == item_id:
                self.state.selected_workspace_id = item.id
                return item
        raise ValidationError(message=f"Workspace item not found: {item_id}")

    def clear_workspace(self: "GenerationOrchestrator") -> None:
        self.state.workspace = []
        self.state.selected_workspace_id = None

    def reset_session(self: "GenerationOrchestrator") -> None:
        """
        작업 공간, 현재 작업, 선택, 분류 작업, 카탈로그 전부 초기화

        실행 중인 작업이 있으면 거부 (작업 결과가 초기화된 상태에 기록되지 않도록)
        """
        if self._is_running():
            raise GenerationInProgressError()

        self.state = StudioState(
            profile=self.state.profile,
            has_credential=self.state.has_credential,
        )
        if self.queue is not None:
            self.queue.clear()
        self.repository.reset()
        logger.info("세션 초기화 완료")

    def select_credential(self: "GenerationOrchestrator", api_key: str) -> bool:
        self.credentials.select(api_key)
        self.state.has_credential = True
        return self.state.has_credential

    # ============================================================
    # 생성
    # ============================================================

    def create_job(
        self: "GenerationOrchestrator", request: GenerationRequest
    ) -> GenerationJob:
        if self._is_running():
            raise GenerationInProgressError()

        source = self.state.selected_workspace_item()
        if source is None:
            raise ValidationError(message=NO_PHOTO_MESSAGE)

        self.state.edit_prompt = request.edit_prompt
        self.state.video_prompt = request.video_prompt
        self.state.aspect_ratio = request.aspect_ratio

        job = GenerationJob(
            id=uuid.uuid4().hex,
            mode=request.mode,
            input_image_id=source.id,
        )
        self.state.current_job = job
        self._cancel_event = asyncio.Event()
        return job

    async def run(
        self: "GenerationOrchestrator", job: GenerationJob, request: GenerationRequest
    ) -> GenerationJob:
        source = self._workspace_item(job.input_image_id)
        cancel_event = self._cancel_event
        started = time.perf_counter()
        logger.info(f"생성 시작: job_id={job.id}, mode={job.mode.value}")

        try:
            if source is None:
                raise ValidationError(message=NO_PHOTO_MESSAGE)
            if job.mode == CreativeMode.TRY_ON:
                await self._run_try_on(job, source)
            elif job.mode == CreativeMode.EDIT:
                await self._run_edit(job, source, request.edit_prompt)
            else:
                await self._run_video(job, source, request, cancel_event)
            job.status = JobStatus.SUCCEEDED

        except Exception as e:
            error = normalize_error(e)
            job.status = JobStatus.FAILED
            job.error = JobError(category=error.category, message=error.message)
            logger.error(
                f"생성 실패: job_id={job.id}, category={error.category.value}, "
                f"detail={error.detail}"
            )

        finally:
            job.elapsed_seconds = time.perf_counter() - started

        logger.info(
            f"생성 종료: job_id={job.id}, status={job.status.value}, "
            f"results={len(job.results)}, elapsed={job.elapsed_seconds:.1f}s"
        )
        return job

    async def generate(
        self: "GenerationOrchestrator", request: GenerationRequest
    ) -> GenerationJob:
        job = self.create_job(request)
        return await self.run(job, request)

    def cancel_current_job(self: "GenerationOrchestrator") -> bool:
        if not self._is_running() or self._cancel_event is None:
            return False
        self._cancel_event.set()
        return True

    # ============================================================
    # 모드별 실행
    # ============================================================

    async def _run_try_on(
        self: "GenerationOrchestrator", job: GenerationJob, source: WorkspaceItem
    ) -> None:
        combinations = generate_outfit_combinations(self.state.selection)
        if not combinations:
            raise ValidationError(message=NO_SELECTION_MESSAGE)
        if any(t.item.image.is_placeholder for combo in combinations for t in combo):
            raise ValidationError(message=PLACEHOLDER_MESSAGE)

        failure: Exception | None = None
        for index, combination in enumerate(combinations):
            try:
                image = await self.client.render_try_on(
                    source.image, combination, self.state.profile
                )
            except Exception as e:
                logger.warning(
                    f"조합 렌더링 실패, 중단: job_id={job.id}, "
                    f"index={index + 1}/{len(combinations)}"
                )
                failure = e
                break
            job.results.append(image)

        if failure is None:
            await self._add_try_on_results(job, source)
            return

        # 중단되더라도 이미 생성된 결과는 작업 공간에 남긴다. 보고되는 오류는 렌더링 실패
        try:
            await self._add_try_on_results(job, source)
        except StorageError as e:
            logger.error(f"부분 결과 저장 실패: job_id={job.id}, error={e}")
        raise failure

    async def _add_try_on_results(
        self: "GenerationOrchestrator", job: GenerationJob, source: WorkspaceItem
    ) -> None:
        if job.results:
            names = [f"try-on-{i + 1}-{source.name}" for i in range(len(job.results))]
            await self._add_results(job, names)

    async def _run_edit(
        self: "GenerationOrchestrator",
        job: GenerationJob,
        source: WorkspaceItem,
        instruction: str,
    ) -> None:
        if not instruction.strip():
            raise ValidationError(message=EMPTY_EDIT_MESSAGE)

        image = await self.client.edit_image(source.image, instruction)
        job.results.append(image)
        await self._add_results(job, [f"edit-{source.name[:20]}"])

    async def _run_video(
        self: "GenerationOrchestrator",
        job: GenerationJob,
        source: WorkspaceItem,
        request: GenerationRequest,
        cancel_event: asyncio.Event | None,
    ) -> None:
        if not request.video_prompt.strip():
            raise ValidationError(message=EMPTY_VIDEO_MESSAGE)

        if not self.credentials.has_credential():
            self.credentials.request_credential()
            self.state.has_credential = True
            raise CredentialError(message=CREDENTIAL_SELECTED_MESSAGE)

        client = self.client.with_api_key(self.credentials.current_credential())
        poller = self.poller
        if client is not self.client:
            poller = OperationPoller(
                client,
                interval_seconds=self.poller.interval_seconds,
                timeout_seconds=self.poller.timeout_seconds,
                settings=self.settings,
            )

        try:
            operation = await client.submit_video(
                source.image,
                request.video_prompt,
                request.aspect_ratio,
                self.settings.video_resolution,
            )
            video = await poller.resolve(operation, cancel_event)
        except Exception as e:
            if normalize_error(e).category == ErrorCategory.CREDENTIAL_ERROR:
                # 거부된 키는 폐기, 다음 시도에서 키 선택을 다시 요청
                self.credentials.invalidate()
                self.state.has_credential = False
            raise

        job.video_url = await asyncio.to_thread(
            self.storage.upload_bytes, video, f"videos/{job.id}.mp4", "video/mp4"
        )

    async def _add_results(
        self: "GenerationOrchestrator", job: GenerationJob, names: list[str]
    ) -> None:
        """생성 결과를 작업 공간 항목으로 저장 (최신이 앞, 마지막 결과 선택)"""
        entries = []
        for image, name in zip(job.results, names):
            item_id = uuid.uuid4().hex
            data = decode_base64(image.base64)
            url = await asyncio.to_thread(
                self.storage.upload_bytes,
                data,
                f"workspace/{item_id}.{extension_for(image.mime_type)}",
                image.mime_type,
            )
            stored = ImageData(
                base64=image.base64, mime_type=image.mime_type, url=url, name=name
            )
            entries.append(WorkspaceItem(id=item_id, name=name, image=stored))

        self.state.workspace[:0] = list(reversed(entries))
        self.state.selected_workspace_id = entries[-1].id
        job.workspace_item_ids = [entry.id for entry in entries]

    def _is_running(self: "GenerationOrchestrator") -> bool:
        job = self.state.current_job
        return job is not None and job.status == JobStatus.RUNNING

    def _workspace_item(
        self: "GenerationOrchestrator", item_id: str
    ) -> WorkspaceItem | None:
        for item in self.state.workspace:
            if item.id == item_id:
                return item
        return None


_orchestrator_instance: GenerationOrchestrator | None = None


def get_orchestrator() -> GenerationOrchestrator:
    global _orchestrator_instance
    if _orchestrator_instance is None:
        _orchestrator_instance = GenerationOrchestrator(
            client=GeminiClient(),
            repository=get_catalogue_repository(),
            storage=get_storage(),
            credentials=get_credential_gate(),
            queue=get_classification_queue(),
        )
    return _orchestrator_instance
