"""
Studio 모듈 스키마 정의
- SelectedItemSet / TryOnItem: 가상 피팅 요청 구성
- WorkspaceItem: 작업 공간 이미지
- GenerationJob: 생성 작업 (try-on / edit / video)
- StudioState: 세션 단위 워크플로우 상태
"""

from enum import Enum

from pydantic import Field

from app.catalogue.schemas import Category, CatalogueItem, Profile
from app.common.schemas import BaseSchema, ImageData
from app.studio.exceptions import ErrorCategory

DEFAULT_VIDEO_PROMPT = (
    "A stunning, confident fashion model walking gracefully on a modern runway. "
    "The model walks with elegance, poise, and attitude, like in a high-end Paris "
    "Fashion Week show. The background features soft spotlights, glossy reflective "
    "floors, and a stylish atmosphere. The camera follows the model in slow motion, "
    "capturing the walk from multiple angles: full-body shots, close-ups, and side "
    "views. Lighting is cinematic, with a slight bokeh effect, and the overall tone "
    "feels luxurious, vibrant, and professional. The model maintains natural movements "
    "and stylish expressions while walking toward the camera. 4K ultra-realistic "
    "video, 60 fps, fashion show style."
)
DEFAULT_EDIT_PROMPT = "Make this photo look like a vintage film still."


class CreativeMode(str, Enum):
    TRY_ON = "try-on"
    EDIT = "edit"
    VIDEO = "video"


class AspectRatio(str, Enum):
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class JobStatus(str, Enum):
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


# ============================================================
# 선택 / 조합
# ============================================================

class TryOnItem(BaseSchema):
    """선택된 카테고리 태그가 붙은 카탈로그 아이템"""
    category: Category
    item: CatalogueItem


OutfitCombination = list[TryOnItem]


class SelectedItemSet(BaseSchema):
    """카테고리별 선택 아이템 (선택 순서 유지)"""
    outfits: list[CatalogueItem] = Field(default_factory=list)
    tops: list[CatalogueItem] = Field(default_factory=list)
    bottoms: list[CatalogueItem] = Field(default_factory=list)
    footwear: list[CatalogueItem] = Field(default_factory=list)
    headwear: list[CatalogueItem] = Field(default_factory=list)
    accessories: list[CatalogueItem] = Field(default_factory=list)

    def for_category(self, category: Category) -> list[CatalogueItem]:
        return getattr(self, category.value)

    def all_items(self) -> list[CatalogueItem]:
        return [item for category in Category for item in self.for_category(category)]


class SelectionRequest(BaseSchema):
    """카테고리별 아이템 ID 목록"""
    selection: dict[Category, list[str]] = Field(default_factory=dict)


class ProfileRequest(BaseSchema):
    profile: Profile


class SelectWorkspaceRequest(BaseSchema):
    item_id: str


# ============================================================
# 작업 공간
# ============================================================

class WorkspaceItem(BaseSchema):
    """작업 공간 이미지 (업로드 사진 또는 생성 결과)"""
    id: str
    name: str
    image: ImageData


class WorkspaceResponse(BaseSchema):
    items: list[WorkspaceItem] = Field(default_factory=list)
    selected_id: str | None = None


# ============================================================
# 생성 작업
# ============================================================

class GenerationRequest(BaseSchema):
    """Generate 요청 (mode에 따라 사용하는 필드가 다름)"""
    mode: CreativeMode
    edit_prompt: str = Field(default=DEFAULT_EDIT_PROMPT, description="edit 모드 지시문")
    video_prompt: str = Field(default=DEFAULT_VIDEO_PROMPT, description="video 모드 프롬프트")
    aspect_ratio: AspectRatio = Field(default=AspectRatio.PORTRAIT)


class VideoOperation(BaseSchema):
    """비동기 영상 생성 작업 핸들"""
    name: str
    done: bool = False
    video_uri: str | None = None
    error: str | None = None


class JobError(BaseSchema):
    category: ErrorCategory
    message: str


class GenerationJob(BaseSchema):
    """Generate 호출 1회에 대응하는 작업 (다음 호출 시 교체됨)"""
    id: str
    mode: CreativeMode
    input_image_id: str
    status: JobStatus = JobStatus.RUNNING
    results: list[ImageData] = Field(default_factory=list)
    workspace_item_ids: list[str] = Field(default_factory=list)
    video_url: str | None = None
    error: JobError | None = None
    elapsed_seconds: float | None = None


class CredentialResponse(BaseSchema):
    has_credential: bool


class StudioState(BaseSchema):
    """세션 워크플로우 상태"""
    profile: Profile = Profile.FEMALE
    selection: SelectedItemSet = Field(default_factory=SelectedItemSet)
    workspace: list[WorkspaceItem] = Field(default_factory=list)
    selected_workspace_id: str | None = None
    current_job: GenerationJob | None = None
    has_credential: bool = False
    edit_prompt: str = DEFAULT_EDIT_PROMPT
    video_prompt: str = DEFAULT_VIDEO_PROMPT
    aspect_ratio: AspectRatio = AspectRatio.PORTRAIT

    def selected_workspace_item(self) -> WorkspaceItem | None:
        for item in self.workspace:
            if item.id == self.selected_workspace_id:
                return item
        return None
