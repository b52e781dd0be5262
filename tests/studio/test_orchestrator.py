import pytest

from app.catalogue.schemas import Category, Profile
from app.core.exceptions import StorageError
from app.studio.exceptions import (
    ERROR_MESSAGES,
    ErrorCategory,
    GenAIServiceError,
    GenerationInProgressError,
    ValidationError,
)
from app.studio.orchestrator import (
    CREDENTIAL_SELECTED_MESSAGE,
    NO_PHOTO_MESSAGE,
    NO_SELECTION_MESSAGE,
    PLACEHOLDER_MESSAGE,
)
from app.studio.schemas import (
    AspectRatio,
    CreativeMode,
    GenerationRequest,
    JobStatus,
    SelectedItemSet,
    VideoOperation,
    WorkspaceItem,
)


@pytest.fixture
def with_photo(orchestrator, result_image):
    photo = WorkspaceItem(id="photo-1", name="me.png", image=result_image)
    orchestrator.state.workspace.insert(0, photo)
    orchestrator.state.selected_workspace_id = photo.id
    return photo


def _select(orchestrator, **categories) -> None:
    orchestrator.state.selection = SelectedItemSet(**categories)


TRY_ON = GenerationRequest(mode=CreativeMode.TRY_ON)


class TestWorkspace:

    @pytest.mark.asyncio
    async def test_add_photo_prepends_and_selects(self, orchestrator, png_bytes):
        # Given
        first = await orchestrator.add_photo(png_bytes, "first.png")

        # When
        second = await orchestrator.add_photo(png_bytes, "second.png")

        # Then
        assert [i.id for i in orchestrator.state.workspace] == [second.id, first.id]
        assert orchestrator.state.selected_workspace_id == second.id
        assert second.image.url.startswith("https://test-bucket.s3/workspace/")

    @pytest.mark.asyncio
    async def test_add_unreadable_photo_is_validation_error(self, orchestrator):
        with pytest.raises(ValidationError):
            await orchestrator.add_photo(b"nope", "broken.png")

    @pytest.mark.asyncio
    async def test_clear_and_select(self, orchestrator, png_bytes):
        # Given
        first = await orchestrator.add_photo(png_bytes, "first.png")
        await orchestrator.add_photo(png_bytes, "second.png")

        # When
        orchestrator.select_workspace_item(first.id)

        # Then
        assert orchestrator.state.selected_workspace_id == first.id
        orchestrator.clear_workspace()
        assert orchestrator.state.workspace == []
        assert orchestrator.state.selected_workspace_id is None

    @pytest.mark.asyncio
    async def test_reset_session_clears_everything(
        self, orchestrator, with_photo, repository, make_item
    ):
        # Given
        repository.add_item(Profile.FEMALE, Category.TOPS, make_item("t1"))
        _select(orchestrator, tops=[make_item("t1")])

        # When
        orchestrator.reset_session()

        # Then
        assert orchestrator.state.workspace == []
        assert orchestrator.state.selection == SelectedItemSet()
        assert orchestrator.state.current_job is None
        assert repository.load(Profile.FEMALE)[Category.TOPS] == []

    def test_reset_is_refused_while_job_running(
        self, orchestrator, with_photo, mock_redis_client
    ):
        # Given
        job = orchestrator.create_job(TRY_ON)

        # When & Then
        with pytest.raises(GenerationInProgressError):
            orchestrator.reset_session()
        assert orchestrator.state.current_job is job
        assert orchestrator.state.workspace == [with_photo]
        mock_redis_client.clear_catalogues.assert_not_called()


class TestSelection:

    def test_update_selection_resolves_ids(self, orchestrator, repository, make_item):
        # Given
        repository.add_item(Profile.FEMALE, Category.TOPS, make_item("a"))
        repository.add_item(Profile.FEMALE, Category.TOPS, make_item("b"))

        # When
        selection = orchestrator.update_selection({Category.TOPS: ["b", "a"]})

        # Then
        assert [i.id for i in selection.tops] == ["b", "a"]

    def test_unknown_item_is_validation_error(self, orchestrator):
        with pytest.raises(ValidationError, match="missing"):
            orchestrator.update_selection({Category.TOPS: ["missing"]})

    def test_profile_change_clears_selection(self, orchestrator, make_item):
        # Given
        _select(orchestrator, tops=[make_item("a")])

        # When
        orchestrator.set_profile(Profile.MALE)

        # Then
        assert orchestrator.state.profile == Profile.MALE
        assert orchestrator.state.selection == SelectedItemSet()


class TestTryOn:

    @pytest.mark.asyncio
    async def test_two_renders_produce_two_results_and_workspace_entries(
        self, orchestrator, with_photo, fake_genai, make_item, result_image
    ):
        # Given
        _select(orchestrator, tops=[make_item("A"), make_item("B")], bottoms=[make_item("C")])
        fake_genai.render_try_on.return_value = result_image

        # When
        job = await orchestrator.generate(TRY_ON)

        # Then
        assert job.status == JobStatus.SUCCEEDED
        assert job.error is None
        assert len(job.results) == 2
        assert fake_genai.render_try_on.await_count == 2
        names = [i.name for i in orchestrator.state.workspace]
        assert names == ["try-on-2-me.png", "try-on-1-me.png", "me.png"]
        assert orchestrator.state.selected_workspace_id == job.workspace_item_ids[-1]
        assert job.elapsed_seconds is not None

    @pytest.mark.asyncio
    async def test_renders_in_combination_order_with_person_first(
        self, orchestrator, with_photo, fake_genai, make_item, result_image
    ):
        # Given
        _select(orchestrator, tops=[make_item("A"), make_item("B")], bottoms=[make_item("C")])
        fake_genai.render_try_on.return_value = result_image

        # When
        await orchestrator.generate(TRY_ON)

        # Then
        calls = fake_genai.render_try_on.await_args_list
        assert [[t.item.id for t in c.args[1]] for c in calls] == [["A", "C"], ["B", "C"]]
        assert all(c.args[0] == with_photo.image for c in calls)
        assert all(c.args[2] == Profile.FEMALE for c in calls)

    @pytest.mark.asyncio
    async def test_fail_fast_keeps_partial_results(
        self, orchestrator, with_photo, fake_genai, make_item, result_image
    ):
        # Given: 4개 조합 중 3번째에서 실패
        _select(
            orchestrator,
            outfits=[make_item("O1"), make_item("O2"), make_item("O3"), make_item("O4")],
        )
        fake_genai.render_try_on.side_effect = [
            result_image,
            result_image,
            GenAIServiceError("You exceeded your current quota"),
            result_image,
        ]

        # When
        job = await orchestrator.generate(TRY_ON)

        # Then
        assert job.status == JobStatus.FAILED
        assert len(job.results) == 2
        assert fake_genai.render_try_on.await_count == 3
        assert job.error.category == ErrorCategory.QUOTA_ERROR
        assert job.error.message == ERROR_MESSAGES[ErrorCategory.QUOTA_ERROR]
        assert len(job.workspace_item_ids) == 2

    @pytest.mark.asyncio
    async def test_fail_fast_reports_render_error_when_saving_partial_results_fails(
        self, orchestrator, with_photo, fake_genai, make_item, result_image, mock_storage
    ):
        # Given: 2번째 조합에서 실패, 부분 결과 업로드도 실패
        _select(orchestrator, outfits=[make_item("O1"), make_item("O2")])
        fake_genai.render_try_on.side_effect = [
            result_image,
            GenAIServiceError("You exceeded your current quota"),
        ]
        mock_storage.upload_bytes.side_effect = StorageError("S3 Upload failed: boom")

        # When
        job = await orchestrator.generate(TRY_ON)

        # Then
        assert job.status == JobStatus.FAILED
        assert len(job.results) == 1
        assert job.error.category == ErrorCategory.QUOTA_ERROR
        assert job.workspace_item_ids == []

    @pytest.mark.asyncio
    async def test_results_are_published_as_they_arrive(
        self, orchestrator, with_photo, fake_genai, make_item, result_image
    ):
        # Given
        _select(orchestrator, outfits=[make_item("O1"), make_item("O2")])
        seen: list[int] = []

        async def _render(person, items, gender):
            seen.append(len(orchestrator.state.current_job.results))
            return result_image

        fake_genai.render_try_on.side_effect = _render

        # When
        await orchestrator.generate(TRY_ON)

        # Then
        assert seen == [0, 1]

    @pytest.mark.asyncio
    async def test_empty_selection_fails_without_service_call(
        self, orchestrator, with_photo, fake_genai
    ):
        # When
        job = await orchestrator.generate(TRY_ON)

        # Then
        assert job.status == JobStatus.FAILED
        assert job.error.category == ErrorCategory.VALIDATION_ERROR
        assert job.error.message == NO_SELECTION_MESSAGE
        fake_genai.render_try_on.assert_not_called()

    @pytest.mark.asyncio
    async def test_placeholder_item_fails_without_service_call(
        self, orchestrator, with_photo, fake_genai, make_item
    ):
        # Given
        _select(orchestrator, outfits=[make_item("O1"), make_item("O2", placeholder=True)])

        # When
        job = await orchestrator.generate(TRY_ON)

        # Then
        assert job.error.message == PLACEHOLDER_MESSAGE
        fake_genai.render_try_on.assert_not_called()


class TestJobLifecycle:

    def test_generate_requires_selected_photo(self, orchestrator):
        with pytest.raises(ValidationError, match=NO_PHOTO_MESSAGE):
            orchestrator.create_job(TRY_ON)

    @pytest.mark.asyncio
    async def test_only_one_running_job(self, orchestrator, with_photo):
        # Given
        orchestrator.create_job(TRY_ON)

        # When & Then
        with pytest.raises(GenerationInProgressError):
            orchestrator.create_job(TRY_ON)

    @pytest.mark.asyncio
    async def test_next_job_replaces_finished_job(self, orchestrator, with_photo):
        # Given
        first = await orchestrator.generate(TRY_ON)

        # When
        second = orchestrator.create_job(TRY_ON)

        # Then
        assert first.status == JobStatus.FAILED
        assert orchestrator.state.current_job is second

    def test_request_prompts_are_kept_in_state(self, orchestrator, with_photo):
        # When
        orchestrator.create_job(
            GenerationRequest(
                mode=CreativeMode.VIDEO,
                video_prompt="slow turn",
                aspect_ratio=AspectRatio.LANDSCAPE,
            )
        )

        # Then
        assert orchestrator.state.video_prompt == "slow turn"
        assert orchestrator.state.aspect_ratio == AspectRatio.LANDSCAPE


class TestEdit:

    @pytest.mark.asyncio
    async def test_edit_produces_one_result_and_entry(
        self, orchestrator, png_bytes, fake_genai, result_image
    ):
        # Given
        await orchestrator.add_photo(png_bytes, "a-very-long-original-photo-name.png")
        fake_genai.edit_image.return_value = result_image

        # When
        job = await orchestrator.generate(
            GenerationRequest(mode=CreativeMode.EDIT, edit_prompt="make it blue")
        )

        # Then
        assert job.status == JobStatus.SUCCEEDED
        assert len(job.results) == 1
        newest = orchestrator.state.workspace[0]
        assert newest.name == "edit-a-very-long-original"
        assert orchestrator.state.selected_workspace_id == newest.id
        fake_genai.edit_image.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_blank_instruction_is_validation_error(
        self, orchestrator, with_photo, fake_genai
    ):
        job = await orchestrator.generate(
            GenerationRequest(mode=CreativeMode.EDIT, edit_prompt="   ")
        )

        assert job.error.message == "Please enter an edit description."
        fake_genai.edit_image.assert_not_called()


class TestVideo:

    @pytest.mark.asyncio
    async def test_missing_credential_triggers_selection_and_aborts(
        self, orchestrator, with_photo, fake_genai, credential_gate
    ):
        # When
        job = await orchestrator.generate(GenerationRequest(mode=CreativeMode.VIDEO))

        # Then
        assert job.status == JobStatus.FAILED
        assert job.error.category == ErrorCategory.CREDENTIAL_ERROR
        assert job.error.message == CREDENTIAL_SELECTED_MESSAGE
        assert orchestrator.state.has_credential is True
        assert credential_gate.selection_requested is True
        fake_genai.submit_video.assert_not_called()

    @pytest.mark.asyncio
    async def test_video_success_uploads_download(
        self, orchestrator, with_photo, fake_genai, mock_storage
    ):
        # Given
        orchestrator.select_credential("user_key")
        fake_genai.submit_video.return_value = VideoOperation(name="op1")
        fake_genai.get_video_operation.return_value = VideoOperation(
            name="op1", done=True, video_uri="https://files.test/v.mp4"
        )
        fake_genai.download_video.return_value = b"mp4"

        # When
        job = await orchestrator.generate(GenerationRequest(mode=CreativeMode.VIDEO))

        # Then
        assert job.status == JobStatus.SUCCEEDED
        assert job.video_url == f"https://test-bucket.s3/videos/{job.id}.mp4"
        fake_genai.with_api_key.assert_called_with("user_key")
        submit = fake_genai.submit_video.await_args
        assert submit.args[2].value == "9:16"
        assert submit.args[3] == "720p"

    @pytest.mark.asyncio
    async def test_credential_failure_resets_flag(
        self, orchestrator, with_photo, fake_genai, credential_gate
    ):
        # Given
        orchestrator.select_credential("stale_key")
        fake_genai.submit_video.side_effect = GenAIServiceError(
            "Requested entity was not found.", status_code=404, status="NOT_FOUND"
        )

        # When
        job = await orchestrator.generate(GenerationRequest(mode=CreativeMode.VIDEO))

        # Then
        assert job.error.category == ErrorCategory.CREDENTIAL_ERROR
        assert orchestrator.state.has_credential is False
        assert credential_gate.has_credential() is False

    @pytest.mark.asyncio
    async def test_rejected_credential_prompts_again_on_next_attempt(
        self, orchestrator, with_photo, fake_genai, credential_gate
    ):
        # Given: 선택된 키가 거부됨
        orchestrator.select_credential("stale_key")
        fake_genai.submit_video.side_effect = GenAIServiceError(
            "Requested entity was not found.", status_code=404, status="NOT_FOUND"
        )
        await orchestrator.generate(GenerationRequest(mode=CreativeMode.VIDEO))

        # When: 다시 영상 생성
        job = await orchestrator.generate(GenerationRequest(mode=CreativeMode.VIDEO))

        # Then: 제출 없이 키 선택을 다시 요청
        assert fake_genai.submit_video.await_count == 1
        assert credential_gate.selection_requested is True
        assert job.error.category == ErrorCategory.CREDENTIAL_ERROR
        assert job.error.message == CREDENTIAL_SELECTED_MESSAGE
        assert orchestrator.state.has_credential is True

    @pytest.mark.asyncio
    async def test_blank_prompt_is_validation_error(self, orchestrator, with_photo, fake_genai):
        job = await orchestrator.generate(
            GenerationRequest(mode=CreativeMode.VIDEO, video_prompt="")
        )

        assert job.error.message == "Please enter a video description."
        fake_genai.submit_video.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancel_stops_polling(self, orchestrator, with_photo, fake_genai):
        # Given
        orchestrator.select_credential("user_key")
        fake_genai.submit_video.return_value = VideoOperation(name="op1")

        async def _poll(name):
            orchestrator.cancel_current_job()
            return VideoOperation(name=name)

        fake_genai.get_video_operation.side_effect = _poll

        # When
        job = await orchestrator.generate(GenerationRequest(mode=CreativeMode.VIDEO))

        # Then
        assert job.status == JobStatus.FAILED
        assert "cancelled" in job.error.message
        fake_genai.download_video.assert_not_called()


@pytest.mark.asyncio
async def test_run_records_elapsed_time_on_failure(orchestrator, with_photo, mocker):
    # Given
    mock_time = mocker.patch("app.studio.orchestrator.time")
    mock_time.perf_counter.side_effect = [10.0, 12.5]

    # When
    job = await orchestrator.generate(TRY_ON)

    # Then
    assert job.status == JobStatus.FAILED
    assert job.elapsed_seconds == pytest.approx(2.5)
