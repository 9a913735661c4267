"""API Endpoint Wrappers - Type-safe API calls"""

from typing import Any

from .base import APIClient


class ImageBotClient:
    """High-level client with typed endpoint methods"""

    def __init__(self, base_url: str, timeout: int = 30, **kwargs: Any):
        self.api = APIClient(base_url=base_url, timeout=timeout, **kwargs)

    def __enter__(self):
        self.api.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.api.__exit__(exc_type, exc_val, exc_tb)

    def health_check(self) -> dict[str, Any]:
        """Check API health status"""
        return self.api.get("/healthz")

    def enqueue_job(self, job_type: str, payload: Any = None) -> dict[str, Any]:
        return self.api.post("/jobs", json={"type": job_type, "payload": payload})

    def get_job(self, job_id: int) -> dict[str, Any]:
        return self.api.get(f"/jobs/{job_id}")

    def get_job_stats(self) -> dict[str, Any]:
        return self.api.get("/jobs/stats/overview")
