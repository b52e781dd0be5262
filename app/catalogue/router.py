"""
Catalogue 모듈 라우터 - API 엔드포인트 정의

API:
- GET /v1/catalogue/uploads: 표시 중인 분류 작업 조회
- POST /v1/catalogue/uploads/{taskId}/retry: 실패한 분류 작업 재시도
- DELETE /v1/catalogue/uploads/{taskId}: 실패한 분류 작업 닫기
- GET /v1/catalogue/{profile}: 프로필별 카탈로그 조회
- POST /v1/catalogue/{profile}/uploads: 의류 이미지 업로드 및 분류 시작
"""

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    HTTPException,
    UploadFile,
    status,
)

from app.catalogue.classification_queue import (
    ClassificationQueue,
    UploadedFile,
    get_classification_queue,
)
from app.catalogue.exceptions import TaskNotFoundError, TaskNotRetryableError
from app.catalogue.repository import CatalogueRepository, get_catalogue_repository
from app.catalogue.schemas import (
    CatalogueResponse,
    ClassificationTask,
    Profile,
    TaskListResponse,
    UploadResponse,
)
from app.core.exceptions import CatalogueStoreError

router = APIRouter(prefix="/v1/catalogue", tags=["catalogue"])


# ============================================================
# 1. 분류 작업 API
# ============================================================


@router.get(
    "/uploads",
    response_model=TaskListResponse,
    summary="분류 작업 조회",
)
async def list_uploads(
    queue: ClassificationQueue = Depends(get_classification_queue),
) -> TaskListResponse:
    return TaskListResponse(tasks=queue.tasks())


@router.post(
    "/uploads/{task_id}/retry",
    response_model=ClassificationTask,
    status_code=status.HTTP_202_ACCEPTED,
    summary="실패한 분류 작업 재시도",
)
async def retry_upload(
    task_id: str,
    background_tasks: BackgroundTasks,
    queue: ClassificationQueue = Depends(get_classification_queue),
) -> ClassificationTask:
    try:
        task = queue.retry(task_id)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except TaskNotRetryableError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    background_tasks.add_task(queue.process, [task.id])
    return task


@router.delete(
    "/uploads/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="분류 작업 닫기",
)
async def dismiss_upload(
    task_id: str,
    queue: ClassificationQueue = Depends(get_classification_queue),
) -> None:
    try:
        queue.dismiss(task_id)
    except TaskNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except TaskNotRetryableError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e


# ============================================================
# 2. 카탈로그 API
# ============================================================


@router.get(
    "/{profile}",
    response_model=CatalogueResponse,
    summary="프로필별 카탈로그 조회",
)
async def get_catalogue(
    profile: Profile,
    repository: CatalogueRepository = Depends(get_catalogue_repository),
) -> CatalogueResponse:
    try:
        items = repository.load(profile)
    except CatalogueStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)
        ) from e
    return CatalogueResponse(profile=profile, items=items)


@router.post(
    "/{profile}/uploads",
    response_model=UploadResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="의류 이미지 업로드",
    description="""
    의류 이미지 업로드 API (비동기)

    - 즉시 202 Accepted 반환 후 백그라운드에서 한 장씩 분류
    - 분류 사이에는 고정 쿨다운 (rate limit)
    - 진행 상황은 GET /v1/catalogue/uploads 로 조회
    """,
)
async def upload_items(
    profile: Profile,
    background_tasks: BackgroundTasks,
    files: list[UploadFile] = File(...),
    queue: ClassificationQueue = Depends(get_classification_queue),
) -> UploadResponse:
    uploads = [
        UploadedFile(
            filename=f.filename or "",
            data=await f.read(),
            content_type=f.content_type,
        )
        for f in files
    ]
    tasks = await queue.submit(profile, uploads)

    background_tasks.add_task(queue.process, [t.id for t in tasks])
    return UploadResponse(queued=len(tasks), tasks=tasks)
