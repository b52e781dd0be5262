import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from app.catalogue.schemas import Category, Profile
from app.common.schemas import ImageData
from app.config import Settings, get_settings
from app.studio.exceptions import ConfigurationError, GenAIServiceError, UnknownError
from app.studio.prompts import CLASSIFICATION_PROMPT, build_try_on_prompt
from app.studio.schemas import AspectRatio, TryOnItem, VideoOperation

logger = logging.getLogger(__name__)

NO_IMAGE_TRY_ON_MESSAGE = (
    "The AI model did not return an image. This can happen if the input is unclear "
    "or violates safety policies. Please try a different photo."
)
NO_IMAGE_EDIT_MESSAGE = (
    "The AI model did not return an image. Please try a different prompt or image."
)
NO_CATEGORY_MESSAGE = "AI could not determine a valid category."


def _inline_part(image: ImageData) -> dict[str, Any]:
    return {"inlineData": {"data": image.base64, "mimeType": image.mime_type}}


def _error_from_response(response: httpx.Response) -> GenAIServiceError:
    """
    Gemini 에러 응답 본문을 GenAIServiceError로 변환

    {"error": {"code": 400, "message": "...", "status": "INVALID_ARGUMENT"}}
    """
    try:
        body = response.json().get("error", {})
    except (ValueError, AttributeError):
        body = {}

    message = body.get("message") or response.text or f"HTTP {response.status_code}"
    return GenAIServiceError(
        message=message,
        status_code=response.status_code,
        status=body.get("status"),
    )


def _first_image(data: dict[str, Any]) -> ImageData | None:
    candidates = data.get("candidates") or [{}]
    parts = (candidates[0].get("content") or {}).get("parts") or []
    for part in parts:
        inline = part.get("inlineData")
        if inline and inline.get("data"):
            return ImageData(
                base64=inline["data"],
                mime_type=inline.get("mimeType", "image/png"),
            )
    return None


def _parse_operation(data: dict[str, Any]) -> VideoOperation:
    samples = (
        data.get("response", {})
        .get("generateVideoResponse", {})
        .get("generatedSamples")
        or [{}]
    )
    error = data.get("error")
    return VideoOperation(
        name=data["name"],
        done=bool(data.get("done", False)),
        video_uri=samples[0].get("video", {}).get("uri"),
        error=error.get("message", str(error)) if error else None,
    )


class GenerativeClient(ABC):
    @abstractmethod
    async def classify_garment(self: "GenerativeClient", image: ImageData) -> Category:
        ...

    @abstractmethod
    async def render_try_on(
        self: "GenerativeClient",
        person: ImageData,
        items: list[TryOnItem],
        gender: Profile,
    ) -> ImageData:
        ...

    @abstractmethod
    async def edit_image(
        self: "GenerativeClient", image: ImageData, instruction: str
    ) -> ImageData:
        ...

    @abstractmethod
    async def submit_video(
        self: "GenerativeClient",
        image: ImageData,
        prompt: str,
        aspect_ratio: AspectRatio,
        resolution: str,
    ) -> VideoOperation:
        ...

    @abstractmethod
    async def get_video_operation(self: "GenerativeClient", name: str) -> VideoOperation:
        ...

    @abstractmethod
    async def download_video(self: "GenerativeClient", uri: str) -> bytes:
        ...

    def with_api_key(self: "GenerativeClient", api_key: str | None) -> "GenerativeClient":
        return self


class GeminiClient(GenerativeClient):
    """
    Gemini REST API 클라이언트

    생성 호출은 재시도하지 않습니다. 실패는 GenAIServiceError(또는 httpx
    네트워크 예외)로 그대로 올라가고, 호출하는 쪽에서 normalize_error로 변환합니다.
    """

    def __init__(
        self: "GeminiClient",
        settings: Settings | None = None,
        api_key: str | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.api_key = api_key or self.settings.gemini_api_key
        self.base_url = self.settings.gemini_base_url.rstrip("/")

    def with_api_key(self: "GeminiClient", api_key: str | None) -> "GeminiClient":
        if not api_key or api_key == self.api_key:
            return self
        return GeminiClient(settings=self.settings, api_key=api_key)

    def _get_headers(self: "GeminiClient") -> dict[str, str]:
        if not self.api_key:
            raise ConfigurationError(detail="GEMINI_API_KEY is not configured")
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    async def _post(
        self: "GeminiClient", path: str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{path}"
        headers = self._get_headers()

        async with httpx.AsyncClient(timeout=self.settings.genai_timeout) as client:
            response = await client.post(url, headers=headers, json=payload)

        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.error("Gemini API Error [%s]: %s", response.status_code, error.message)
            raise error
        return response.json()

    async def _generate_image(
        self: "GeminiClient", parts: list[dict[str, Any]], empty_message: str
    ) -> ImageData:
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        }
        data = await self._post(
            f"models/{self.settings.image_model}:generateContent", payload
        )

        image = _first_image(data)
        if image is None:
            logger.warning("Image model returned no image part")
            raise UnknownError(message=empty_message)
        return image

    async def classify_garment(self: "GeminiClient", image: ImageData) -> Category:
        payload = {
            "contents": [{"parts": [_inline_part(image), {"text": CLASSIFICATION_PROMPT}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": {
                    "type": "OBJECT",
                    "properties": {
                        "category": {
                            "type": "STRING",
                            "enum": [c.value for c in Category],
                            "description": "The category of the clothing item.",
                        }
                    },
                    "required": ["category"],
                },
            },
        }
        data = await self._post(
            f"models/{self.settings.classifier_model}:generateContent", payload
        )

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
            category = json.loads(text).get("category")
        except (KeyError, IndexError, json.JSONDecodeError) as e:
            logger.error(f"Failed to parse classification response: {e}")
            raise GenAIServiceError(NO_CATEGORY_MESSAGE) from e

        if not category:
            raise GenAIServiceError(NO_CATEGORY_MESSAGE)
        return Category(category)

    async def render_try_on(
        self: "GeminiClient",
        person: ImageData,
        items: list[TryOnItem],
        gender: Profile,
    ) -> ImageData:
        # 사람 이미지가 항상 첫 번째, 이어서 의류 이미지, 마지막에 지시문
        parts = [_inline_part(person)]
        parts.extend(_inline_part(i.item.image) for i in items)
        parts.append({"text": build_try_on_prompt(items, gender)})
        return await self._generate_image(parts, NO_IMAGE_TRY_ON_MESSAGE)

    async def edit_image(
        self: "GeminiClient", image: ImageData, instruction: str
    ) -> ImageData:
        parts = [_inline_part(image), {"text": instruction}]
        return await self._generate_image(parts, NO_IMAGE_EDIT_MESSAGE)

    async def submit_video(
        self: "GeminiClient",
        image: ImageData,
        prompt: str,
        aspect_ratio: AspectRatio,
        resolution: str,
    ) -> VideoOperation:
        payload = {
            "instances": [
                {
                    "prompt": prompt,
                    "image": {
                        "bytesBase64Encoded": image.base64,
                        "mimeType": image.mime_type,
                    },
                }
            ],
            "parameters": {
                "aspectRatio": aspect_ratio.value,
                "resolution": resolution,
                "sampleCount": 1,
            },
        }
        data = await self._post(
            f"models/{self.settings.video_model}:predictLongRunning", payload
        )
        operation = _parse_operation(data)
        logger.info("Video operation submitted: %s", operation.name)
        return operation

    async def get_video_operation(self: "GeminiClient", name: str) -> VideoOperation:
        url = f"{self.base_url}/{name}"
        headers = self._get_headers()

        async with httpx.AsyncClient(timeout=self.settings.genai_timeout) as client:
            response = await client.get(url, headers=headers)

        if response.status_code >= 400:
            error = _error_from_response(response)
            logger.error("Gemini operation poll failed [%s]: %s", response.status_code, error.message)
            raise error
        return _parse_operation(response.json())

    async def download_video(self: "GeminiClient", uri: str) -> bytes:
        if not self.api_key:
            raise ConfigurationError(detail="GEMINI_API_KEY is not configured")
        url = httpx.URL(uri).copy_merge_params({"key": self.api_key})

        async with httpx.AsyncClient(
            timeout=self.settings.genai_timeout, follow_redirects=True
        ) as client:
            response = await client.get(url)

        if response.status_code >= 400:
            raise GenAIServiceError(
                f"Failed to download video: {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.content
