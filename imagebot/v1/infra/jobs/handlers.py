"""
Job handlers for externally executed model tasks.

Each handler waits on a RunPod-style task through a ``StatusPoller`` and
reports the outcome back to the requester's chat. Handlers satisfy the
``JobHandler`` protocol structurally; they share helpers, not a base class.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, JsonValue
from pydantic import ValidationError as PydanticValidationError

from imagebot.config.logging import get_logger
from imagebot.v1.core.exceptions import ValidationError
from imagebot.v1.infra.jobs.polling import StatusPoller
from imagebot.v1.infra.jobs.repository import JobRecord
from imagebot.v1.notify.base import Artifact, ArtifactStore, Notifier
from imagebot.v1.training.repository import TrainingRepository

logger = get_logger(__name__)

JOB_TYPE_TRAINING = "monitor-training-status"
JOB_TYPE_INFERENCE = "generate-image"
JOB_TYPE_STYLE_CHECK = "check-style-status"

TRAINING_DONE_MESSAGE = "Training completed, you can now generate images with prompts"
TRAINING_FAILED_MESSAGE = "Failed to do the training, please try again"
INFERENCE_FAILED_MESSAGE = "Failed to generate image, please try again"
STYLE_CHECK_FAILED_MESSAGE = "Failed to check style, please try again"
STYLE_CHECK_FILENAME = "style_comparison.png"


class StatusJobPayload(BaseModel):
    """
    Payload shared by the status jobs.

    {
        "jobId": "external-task-id",
        "chatId": "chat to notify",
        "userId": "requesting user"  # optional
    }
    """

    model_config = ConfigDict(
        populate_by_name=True, extra="ignore", coerce_numbers_to_str=True
    )

    task_id: str = Field(alias="jobId", min_length=1)
    chat_id: str = Field(alias="chatId", min_length=1)
    user_id: str | None = Field(default=None, alias="userId")


def parse_payload(payload: Any) -> StatusJobPayload:
    try:
        return StatusJobPayload.model_validate(payload)
    except PydanticValidationError as e:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"]) or "payload" for err in e.errors()
        )
        raise ValidationError(f"Invalid job payload: {fields}") from e


def completion_result(task_id: str, output: JsonValue) -> dict[str, JsonValue]:
    return {"status": "completed", "task_id": task_id, "output": output}


def _payload_for_hook(job: JobRecord) -> StatusJobPayload | None:
    try:
        return parse_payload(job.payload)
    except ValidationError:
        logger.warning("job_hook_payload_invalid", job_id=job.id, job_type=job.type)
        return None


def _artifact_from(output: JsonValue, *keys: str) -> Artifact | None:
    if isinstance(output, str) and output:
        return output
    if isinstance(output, dict):
        for key in keys:
            value = output.get(key)
            if isinstance(value, str) and value:
                return value
    return None


class TrainingStatusHandler:
    """Waits for a model training run and updates the user's training record."""

    def __init__(
        self,
        poller: StatusPoller,
        notifier: Notifier,
        trainings: TrainingRepository,
    ):
        self.poller = poller
        self.notifier = notifier
        self.trainings = trainings

    async def handle(self, payload: Any) -> dict[str, JsonValue]:
        params = parse_payload(payload)
        output = await self.poller.wait_for(params.task_id)
        return completion_result(params.task_id, output)

    async def on_success(self, result: Any, job: JobRecord) -> None:
        params = _payload_for_hook(job)
        if params is None:
            return

        logger.info("training_job_completed", job_id=job.id, user_id=params.user_id)
        if params.user_id:
            await self.trainings.complete_training(params.user_id)
        await self.notifier.notify(params.chat_id, TRAINING_DONE_MESSAGE)

    async def on_error(self, error: Exception, job: JobRecord) -> None:
        params = _payload_for_hook(job)
        if params is None:
            return

        logger.warning(
            "training_job_failed", job_id=job.id, user_id=params.user_id, error=str(error)
        )
        # Reset the record so the user can start a new training
        try:
            if params.user_id:
                await self.trainings.fail_training(params.user_id)
        finally:
            await self.notifier.notify(params.chat_id, TRAINING_FAILED_MESSAGE)


class InferenceStatusHandler:
    """Waits for an image generation task and sends the image to the chat."""

    def __init__(self, poller: StatusPoller, notifier: Notifier):
        self.poller = poller
        self.notifier = notifier

    async def handle(self, payload: Any) -> dict[str, JsonValue]:
        params = parse_payload(payload)
        output = await self.poller.wait_for(params.task_id)
        return completion_result(params.task_id, output)

    async def on_success(self, result: Any, job: JobRecord) -> None:
        params = _payload_for_hook(job)
        if params is None:
            return

        artifact = _artifact_from(result.get("output"), "image", "filename")
        if artifact is None:
            logger.warning("inference_output_missing_image", job_id=job.id)
            await self.notifier.notify(params.chat_id, INFERENCE_FAILED_MESSAGE)
            return

        await self.notifier.deliver(params.chat_id, artifact)

    async def on_error(self, error: Exception, job: JobRecord) -> None:
        params = _payload_for_hook(job)
        if params is None:
            return

        logger.warning("inference_job_failed", job_id=job.id, error=str(error))
        await self.notifier.notify(params.chat_id, INFERENCE_FAILED_MESSAGE)


class StyleCheckStatusHandler:
    """
    Waits for a style comparison render and sends it as a document.

    The worker writes the render to temporary storage under
    ``output.filename``; the file is downloaded, delivered and then removed.
    """

    def __init__(
        self,
        poller: StatusPoller,
        notifier: Notifier,
        artifacts: ArtifactStore,
    ):
        self.poller = poller
        self.notifier = notifier
        self.artifacts = artifacts

    async def handle(self, payload: Any) -> dict[str, JsonValue]:
        params = parse_payload(payload)
        output = await self.poller.wait_for(params.task_id)
        return completion_result(params.task_id, output)

    async def on_success(self, result: Any, job: JobRecord) -> None:
        params = _payload_for_hook(job)
        if params is None:
            return

        output = result.get("output")
        key = _artifact_from(output, "filename")

        if not key:
            logger.warning("style_check_output_missing_file", job_id=job.id)
            await self.notifier.notify(params.chat_id, STYLE_CHECK_FAILED_MESSAGE)
            return

        content = await self.artifacts.load(key)
        try:
            await self.notifier.deliver(
                params.chat_id, content, filename=STYLE_CHECK_FILENAME
            )
        finally:
            await self.artifacts.delete(key)

    async def on_error(self, error: Exception, job: JobRecord) -> None:
        params = _payload_for_hook(job)
        if params is None:
            return

        logger.warning("style_check_job_failed", job_id=job.id, error=str(error))
        await self.notifier.notify(params.chat_id, STYLE_CHECK_FAILED_MESSAGE)
