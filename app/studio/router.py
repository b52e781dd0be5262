"""
Studio 모듈 라우터 - API 엔드포인트 정의

API:
- PUT /v1/studio/profile: 프로필 변경 (선택 초기화)
- PUT /v1/studio/selection: 카테고리별 선택 변경
- POST|GET|DELETE /v1/studio/workspace: 작업 공간 사진 추가 / 조회 / 비우기
- PUT /v1/studio/workspace/selected: 작업 공간 이미지 선택
- POST /v1/studio/generate: 생성 시작 (try-on / edit / video)
- GET|DELETE /v1/studio/jobs/current: 현재 작업 조회 / 취소
- POST /v1/studio/credential: 영상 생성용 API 키 선택
- POST /v1/studio/reset: 세션 초기화
"""

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Body,
    Depends,
    File,
    HTTPException,
    UploadFile,
    status,
)

from app.studio.orchestrator import GenerationOrchestrator, get_orchestrator
from app.studio.schemas import (
    CredentialResponse,
    GenerationJob,
    GenerationRequest,
    ProfileRequest,
    SelectedItemSet,
    SelectionRequest,
    SelectWorkspaceRequest,
    StudioState,
    WorkspaceItem,
    WorkspaceResponse,
)

router = APIRouter(prefix="/v1/studio", tags=["studio"])


def _workspace(orchestrator: GenerationOrchestrator) -> WorkspaceResponse:
    return WorkspaceResponse(
        items=orchestrator.state.workspace,
        selected_id=orchestrator.state.selected_workspace_id,
    )


# ============================================================
# 1. 프로필 / 선택
# ============================================================


@router.put("/profile", response_model=StudioState, summary="프로필 변경")
async def set_profile(
    request: ProfileRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> StudioState:
    return orchestrator.set_profile(request.profile)


@router.put("/selection", response_model=SelectedItemSet, summary="선택 변경")
async def update_selection(
    request: SelectionRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> SelectedItemSet:
    return orchestrator.update_selection(request.selection)


# ============================================================
# 2. 작업 공간
# ============================================================


@router.post(
    "/workspace",
    response_model=WorkspaceItem,
    status_code=status.HTTP_201_CREATED,
    summary="작업 공간 사진 추가",
)
async def add_photo(
    photo: UploadFile = File(...),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> WorkspaceItem:
    data = await photo.read()
    return await orchestrator.add_photo(data, photo.filename or "photo", photo.content_type)


@router.get("/workspace", response_model=WorkspaceResponse, summary="작업 공간 조회")
async def get_workspace(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> WorkspaceResponse:
    return _workspace(orchestrator)


@router.put(
    "/workspace/selected", response_model=WorkspaceResponse, summary="작업 공간 이미지 선택"
)
async def select_workspace_item(
    request: SelectWorkspaceRequest,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> WorkspaceResponse:
    orchestrator.select_workspace_item(request.item_id)
    return _workspace(orchestrator)


@router.delete(
    "/workspace", status_code=status.HTTP_204_NO_CONTENT, summary="작업 공간 비우기"
)
async def clear_workspace(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> None:
    orchestrator.clear_workspace()


# ============================================================
# 3. 생성
# ============================================================


@router.post(
    "/generate",
    response_model=GenerationJob,
    status_code=status.HTTP_202_ACCEPTED,
    summary="생성 시작",
    description="""
    생성 시작 API (비동기)

    - try-on: 선택 조합마다 순차 렌더링, 결과는 생성될 때마다 현재 작업에 추가
    - edit: 선택 이미지 1장 편집
    - video: 영상 생성 후 완료까지 폴링

    즉시 202 Accepted 반환, 진행 상황은 GET /v1/studio/jobs/current 로 조회
    """,
)
async def generate(
    request: GenerationRequest,
    background_tasks: BackgroundTasks,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationJob:
    job = orchestrator.create_job(request)
    background_tasks.add_task(orchestrator.run, job, request)
    return job


@router.get("/jobs/current", response_model=GenerationJob, summary="현재 작업 조회")
async def get_current_job(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerationJob:
    job = orchestrator.state.current_job
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="진행 중이거나 완료된 작업이 없습니다."
        )
    return job


@router.delete(
    "/jobs/current", status_code=status.HTTP_202_ACCEPTED, summary="현재 작업 취소"
)
async def cancel_current_job(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> dict[str, bool]:
    return {"cancelled": orchestrator.cancel_current_job()}


# ============================================================
# 4. 자격 증명 / 세션
# ============================================================


@router.post("/credential", response_model=CredentialResponse, summary="API 키 선택")
async def select_credential(
    api_key: str = Body(..., embed=True, alias="apiKey", min_length=1),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> CredentialResponse:
    return CredentialResponse(has_credential=orchestrator.select_credential(api_key))


@router.post("/reset", response_model=StudioState, summary="세션 초기화")
async def reset_session(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> StudioState:
    orchestrator.reset_session()
    return orchestrator.state
