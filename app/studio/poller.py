import asyncio
import logging

from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_result,
    stop_after_delay,
    stop_when_event_set,
    wait_fixed,
)

from app.config import Settings, get_settings
from app.studio.exceptions import GenAIServiceError, ServiceUnavailableError, UnknownError
from app.studio.genai_client import GenerativeClient
from app.studio.schemas import VideoOperation

logger = logging.getLogger(__name__)

NO_DOWNLOAD_LINK_MESSAGE = "Video generation completed, but no download link was found."
TIMEOUT_MESSAGE = "Video generation is taking longer than expected. Please try again later."
CANCELLED_MESSAGE = "Video generation was cancelled."


def _is_pending(operation: VideoOperation) -> bool:
    return not operation.done


class OperationPoller:
    """
    영상 생성 long-running operation 폴링

    고정 간격으로 상태를 다시 조회하고, 완료되면 다운로드 URI를 돌려줍니다.
    타임아웃과 취소 이벤트로 무한 대기를 막습니다.
    """

    def __init__(
        self: "OperationPoller",
        client: GenerativeClient,
        interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.client = client
        self.interval_seconds = (
            settings.video_poll_interval_seconds if interval_seconds is None else interval_seconds
        )
        self.timeout_seconds = (
            settings.video_poll_timeout_seconds if timeout_seconds is None else timeout_seconds
        )

    async def wait(
        self: "OperationPoller",
        operation: VideoOperation,
        cancel_event: asyncio.Event | None = None,
    ) -> str:
        """완료될 때까지 폴링 후 다운로드 URI 반환"""
        if not operation.done:
            operation = await self._poll_until_done(operation, cancel_event)

        if operation.error:
            logger.error("Video operation %s failed: %s", operation.name, operation.error)
            raise GenAIServiceError(operation.error)

        if not operation.video_uri:
            raise UnknownError(message=NO_DOWNLOAD_LINK_MESSAGE)

        logger.info("Video operation %s completed", operation.name)
        return operation.video_uri

    async def _poll_until_done(
        self: "OperationPoller",
        operation: VideoOperation,
        cancel_event: asyncio.Event | None,
    ) -> VideoOperation:
        stop = stop_after_delay(self.timeout_seconds)
        if cancel_event is not None:
            stop = stop | stop_when_event_set(cancel_event)

        retrying = AsyncRetrying(
            retry=retry_if_result(_is_pending),
            wait=wait_fixed(self.interval_seconds),
            stop=stop,
            before_sleep=before_sleep_log(logger, logging.DEBUG),
        )

        # 조회 중 발생한 예외는 재시도하지 않고 그대로 전파
        try:
            return await retrying(self.client.get_video_operation, operation.name)
        except RetryError:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Video operation %s cancelled", operation.name)
                raise UnknownError(message=CANCELLED_MESSAGE) from None
            logger.warning(
                "Video operation %s timed out after %.0fs",
                operation.name,
                self.timeout_seconds,
            )
            raise ServiceUnavailableError(message=TIMEOUT_MESSAGE) from None

    async def resolve(
        self: "OperationPoller",
        operation: VideoOperation,
        cancel_event: asyncio.Event | None = None,
    ) -> bytes:
        uri = await self.wait(operation, cancel_event)
        return await self.client.download_video(uri)
