"""LogNotifier — reports notifications via logging when no chat transport is configured."""

from imagebot.config.logging import get_logger
from imagebot.v1.notify.base import Artifact

logger = get_logger(__name__)


class LogNotifier:
    async def notify(self, destination: str, message: str) -> None:
        logger.info("notification", destination=destination, message=message)

    async def deliver(
        self, destination: str, artifact: Artifact, filename: str | None = None
    ) -> None:
        if isinstance(artifact, bytes):
            description = f"{len(artifact)} bytes"
        else:
            description = artifact
        logger.info(
            "artifact_delivery",
            destination=destination,
            artifact=description,
            filename=filename,
        )
