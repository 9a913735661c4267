from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

# Base registry implementation
T = TypeVar("T")


class Registry(Generic[T]):
    """Generic registry for pluggable implementations."""

    def __init__(self, name: str):
        self.name = name
        self._implementations: dict[str, T] = {}
        self._frozen = False

    def register(self, name: str, implementation: T) -> None:
        """Register an implementation with a given name (last writer wins)."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{name}' in {self.name.lower()} registry: "
                "registry is frozen in production mode"
            )
        self._implementations[name] = implementation

    def resolve(self, name: str) -> T | None:
        """Look up an implementation, returning None when absent."""
        return self._implementations.get(name)

    def list(self) -> list[str]:
        """List all registered implementation names."""
        return list(self._implementations.keys())

    def clear(self) -> None:
        """Drop every registration."""
        if self._frozen:
            raise RuntimeError(f"Cannot clear frozen {self.name.lower()} registry")
        self._implementations.clear()

    def freeze(self) -> None:
        """Freeze the registry to prevent further modifications."""
        self._frozen = True

    def is_frozen(self) -> bool:
        """Check if the registry is frozen."""
        return self._frozen


# Job Registry - background processing handlers
@runtime_checkable
class JobHandler(Protocol):
    """
    Capability interface for background job handlers.

    Only ``handle`` is required. A handler may also define the hooks

        async def on_success(self, result, job: JobRecord) -> None
        async def on_error(self, error: Exception, job: JobRecord) -> None

    which the job manager calls after the terminal status is persisted.
    """

    async def handle(self, payload: Any) -> Any:
        """
        Run the job.

        Args:
            payload: Job-specific parameters as stored at enqueue time

        Returns:
            JSON-compatible result to store with the completed job
        """
        ...


class JobRegistry(Registry[JobHandler]):
    """Registry for background job handlers, keyed by job type."""

    def __init__(self):
        super().__init__("Job")


# Global registry instance (singleton)
job_registry = JobRegistry()
