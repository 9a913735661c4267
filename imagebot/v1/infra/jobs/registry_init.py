"""
Job registry initialization.

Registers the status job handlers with the job registry. Registrations
live for the process only and are rebuilt on every start.
"""

import httpx

from imagebot.config.logging import get_logger
from imagebot.config.settings import Settings
from imagebot.v1.core.registries import JobRegistry, job_registry
from imagebot.v1.infra.jobs.handlers import (
    JOB_TYPE_INFERENCE,
    JOB_TYPE_STYLE_CHECK,
    JOB_TYPE_TRAINING,
    InferenceStatusHandler,
    StyleCheckStatusHandler,
    TrainingStatusHandler,
)
from imagebot.v1.infra.jobs.polling import PollPolicy, StatusPoller
from imagebot.v1.notify.base import ArtifactStore, Notifier
from imagebot.v1.providers.runpod import RunPodStatusSource
from imagebot.v1.training.repository import TrainingRepository

logger = get_logger(__name__)


def register_job_handlers(
    settings: Settings,
    *,
    notifier: Notifier,
    runpod_client: httpx.AsyncClient,
    trainings: TrainingRepository,
    artifacts: ArtifactStore | None = None,
    registry: JobRegistry = job_registry,
) -> None:
    """
    Register every handler whose RunPod endpoint is configured.

    The style check also needs ``artifacts`` to fetch its render from
    temporary storage and is skipped without one.
    """

    logger.info("Registering job handlers")

    def poller(endpoint_id: str, policy: PollPolicy) -> StatusPoller:
        return StatusPoller(RunPodStatusSource(runpod_client, endpoint_id), policy)

    if settings.runpod_train_endpoint_id:
        registry.register(
            JOB_TYPE_TRAINING,
            TrainingStatusHandler(
                poller(
                    settings.runpod_train_endpoint_id,
                    PollPolicy(
                        interval_s=settings.training_poll_interval_s,
                        max_attempts=settings.training_max_attempts,
                    ),
                ),
                notifier,
                trainings,
            ),
        )

    if settings.runpod_inference_endpoint_id:
        registry.register(
            JOB_TYPE_INFERENCE,
            InferenceStatusHandler(
                poller(
                    settings.runpod_inference_endpoint_id,
                    PollPolicy(
                        interval_s=settings.inference_poll_interval_s,
                        max_attempts=settings.inference_max_attempts,
                    ),
                ),
                notifier,
            ),
        )

    if settings.runpod_check_style_endpoint_id and artifacts is None:
        logger.warning(
            "Style check handler needs an artifact store", job_type=JOB_TYPE_STYLE_CHECK
        )
    elif settings.runpod_check_style_endpoint_id:
        registry.register(
            JOB_TYPE_STYLE_CHECK,
            StyleCheckStatusHandler(
                poller(
                    settings.runpod_check_style_endpoint_id,
                    PollPolicy(
                        interval_s=settings.style_check_poll_interval_s,
                        max_attempts=settings.style_check_max_attempts,
                        warmup_s=settings.style_check_warmup_s,
                    ),
                ),
                notifier,
                artifacts,
            ),
        )

    missing = {JOB_TYPE_TRAINING, JOB_TYPE_INFERENCE, JOB_TYPE_STYLE_CHECK} - set(
        registry.list()
    )
    if missing:
        logger.warning("Job handlers without endpoint", job_types=sorted(missing))

    logger.info("Job handlers registered", registered_handlers=registry.list())
