"""
RunPod serverless endpoint status lookups.
"""

import httpx

from imagebot.config.logging import get_logger
from imagebot.v1.core.exceptions import ExternalServiceError
from imagebot.v1.infra.jobs.polling import TaskStatus

logger = get_logger(__name__)

FAILED_STATUSES = frozenset({"FAILED", "CANCELLED", "CANCELED", "TIMED_OUT"})


class RunPodStatusSource:
    """
    Reports the status of tasks submitted to one RunPod endpoint.

    ``COMPLETED`` yields the task's ``output``; failed or cancelled tasks
    yield their ``error`` text; every other status (``IN_QUEUE``,
    ``IN_PROGRESS``, ...) is still pending.
    """

    def __init__(self, client: httpx.AsyncClient, endpoint_id: str):
        if not endpoint_id:
            raise ValueError("RunPod endpoint id is required")
        self.client = client
        self.endpoint_id = endpoint_id

    async def poll_status(self, task_id: str) -> TaskStatus:
        try:
            response = await self.client.get(f"/{self.endpoint_id}/status/{task_id}")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalServiceError(
                f"Failed to get status for job {task_id}: {e}", task_id=task_id
            ) from e

        status = str(data.get("status", "")).upper()
        logger.debug(
            "runpod_status", endpoint_id=self.endpoint_id, task_id=task_id, status=status
        )

        if status in FAILED_STATUSES:
            return TaskStatus.failed(data.get("error") or f"Job {status.lower()}")

        if status == "COMPLETED":
            output = data.get("output")
            return TaskStatus.completed(output if output is not None else {})

        return TaskStatus.pending()


def create_runpod_client(
    base_url: str, api_key: str | None, timeout_s: float
) -> httpx.AsyncClient:
    headers = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"), headers=headers, timeout=timeout_s
    )
