from typing import Protocol

# Binary content, or a reference (URL / transport file id) the sink can resend
Artifact = bytes | str


class Notifier(Protocol):
    """Outbound channel to the requester (e.g. a chat transport)."""

    async def notify(self, destination: str, message: str) -> None:
        """Send a text message."""
        ...

    async def deliver(
        self, destination: str, artifact: Artifact, filename: str | None = None
    ) -> None:
        """
        Send a produced artifact.

        Without ``filename`` the artifact is sent as an image; with one it
        is sent as a document under that name.
        """
        ...


class ArtifactStore(Protocol):
    """Temporary storage that external workers write their outputs to."""

    async def load(self, key: str) -> bytes: ...

    async def delete(self, key: str) -> None: ...
