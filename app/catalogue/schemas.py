"""
Catalogue 모듈 스키마 정의
- CatalogueItem: 카탈로그에 저장되는 의류 아이템
- ClassificationTask: 업로드된 의류 이미지의 카테고리 분류 작업
- CatalogueResponse / UploadResponse: API 응답
"""

from enum import Enum

from pydantic import Field

from app.common.schemas import BaseSchema, ImageData


# ============================================================
# 공통 Enum 정의
# ============================================================

class Category(str, Enum):
    """의류 카테고리 (분류 결과 enum)"""
    OUTFITS = "outfits"          # 상하의를 한 벌로 덮는 아이템 (원피스, 수트)
    TOPS = "tops"
    BOTTOMS = "bottoms"
    FOOTWEAR = "footwear"
    HEADWEAR = "headwear"
    ACCESSORIES = "accessories"


class Profile(str, Enum):
    """카탈로그 프로필"""
    FEMALE = "female"
    MALE = "male"


class ClassificationStatus(str, Enum):
    """분류 작업 상태"""
    PENDING = "PENDING"
    CLASSIFYING = "CLASSIFYING"
    DONE = "DONE"
    FAILED = "FAILED"


# ============================================================
# 카탈로그
# ============================================================

class CatalogueItem(BaseSchema):
    """카탈로그 아이템 (생성 후 변경 불가)"""
    id: str = Field(..., description="아이템 ID")
    name: str = Field(..., description="표시 이름")
    image: ImageData = Field(..., description="아이템 이미지")


def empty_catalogue() -> dict[Category, list[CatalogueItem]]:
    return {category: [] for category in Category}


class CatalogueResponse(BaseSchema):
    """프로필별 카탈로그 조회 응답"""
    profile: Profile
    items: dict[Category, list[CatalogueItem]] = Field(default_factory=empty_catalogue)


# ============================================================
# 분류 작업
# ============================================================

class ClassificationTask(BaseSchema):
    """업로드 파일 하나에 대한 분류 작업"""
    id: str = Field(..., description="작업 ID (카탈로그 아이템 ID로 재사용)")
    name: str = Field(..., description="원본 파일 이름")
    profile: Profile = Field(..., description="분류 결과가 들어갈 프로필")
    preview_url: str = Field(default="", description="미리보기 URL")
    status: ClassificationStatus = Field(default=ClassificationStatus.PENDING)
    category: Category | None = Field(default=None, description="분류 결과")
    error: str | None = Field(default=None, description="실패 시 에러 메시지")


class UploadResponse(BaseSchema):
    """업로드 접수 응답 (202 Accepted)"""
    queued: int = Field(..., description="대기열에 추가된 파일 수")
    tasks: list[ClassificationTask] = Field(default_factory=list)


class TaskListResponse(BaseSchema):
    """표시 중인 분류 작업 목록 (완료된 작업 제외)"""
    tasks: list[ClassificationTask] = Field(default_factory=list)
