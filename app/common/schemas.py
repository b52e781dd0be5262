from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """모든 스키마의 기본 클래스

    Python에서는 snake_case를 사용하고,
    JSON 데이터에서는 camelCase를 자동으로 지원하도록 설정합니다.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True
    )


class ImageData(BaseSchema):
    """Owned image: base64 payload, MIME type and display URL."""

    base64: str = Field(default="", description="base64 인코딩된 이미지 (prefix 없음)")
    mime_type: str = Field(default="image/png", description="MIME 타입")
    url: str = Field(default="", description="표시/다운로드용 URL")
    name: str = Field(default="", description="파일 이름")

    @property
    def is_placeholder(self) -> bool:
        return not self.base64
