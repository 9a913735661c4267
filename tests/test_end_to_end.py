"""Job lifecycle from enqueue to chat delivery, with RunPod mocked at the HTTP layer."""

import asyncio
from unittest.mock import AsyncMock

import httpx

from imagebot.v1.core.registries import JobRegistry
from imagebot.v1.infra.jobs.handlers import (
    INFERENCE_FAILED_MESSAGE,
    JOB_TYPE_INFERENCE,
    JOB_TYPE_STYLE_CHECK,
    JOB_TYPE_TRAINING,
)
from imagebot.v1.infra.jobs.manager import JobManager
from imagebot.v1.infra.jobs.models import JobStatus
from imagebot.v1.infra.jobs.registry_init import register_job_handlers


def runpod_client(statuses: dict[str, list[dict]]) -> httpx.AsyncClient:
    """RunPod stub: each task id answers with its scripted statuses in turn."""

    def handler(request: httpx.Request) -> httpx.Response:
        task_id = request.url.path.rsplit("/", 1)[-1]
        script = statuses[task_id]
        body = script.pop(0) if len(script) > 1 else script[0]
        return httpx.Response(200, json=body)

    return httpx.AsyncClient(
        base_url="https://api.runpod.test/v2", transport=httpx.MockTransport(handler)
    )


def configure(test_settings):
    return test_settings.model_copy(
        update={
            "runpod_train_endpoint_id": "train-ep",
            "runpod_inference_endpoint_id": "infer-ep",
            "runpod_check_style_endpoint_id": "style-ep",
            "inference_poll_interval_s": 0,
            "inference_max_attempts": 3,
        }
    )


async def run_to_completion(manager: JobManager, job_id: int):
    await manager.run_pass()
    await asyncio.wait_for(manager.wait_idle(), timeout=5)
    return await manager.get(job_id)


async def test_generate_image_job_delivers_to_chat(
    test_settings, job_repository, registry, notifier, training_repository
):
    client = runpod_client(
        {
            "t1": [
                {"status": "IN_QUEUE"},
                {"status": "IN_PROGRESS"},
                {"status": "COMPLETED", "output": {"image": "https://cdn/t1.png"}},
            ]
        }
    )
    register_job_handlers(
        configure(test_settings),
        notifier=notifier,
        runpod_client=client,
        trainings=training_repository,
        registry=registry,
    )
    manager = JobManager(job_repository, registry, concurrency=10)

    job_id = await job_repository.enqueue(JOB_TYPE_INFERENCE, {"jobId": "t1", "chatId": "c1"})
    job = await run_to_completion(manager, job_id)
    await client.aclose()

    assert job.status == JobStatus.COMPLETED
    assert job.result == {
        "status": "completed",
        "task_id": "t1",
        "output": {"image": "https://cdn/t1.png"},
    }
    assert notifier.deliveries == [("c1", "https://cdn/t1.png", None)]


async def test_generate_image_completed_on_first_query(
    test_settings, job_repository, registry, notifier, training_repository
):
    client = runpod_client({"t1": [{"status": "COMPLETED", "output": {"image": "BASE64..."}}]})
    register_job_handlers(
        configure(test_settings),
        notifier=notifier,
        runpod_client=client,
        trainings=training_repository,
        registry=registry,
    )
    manager = JobManager(job_repository, registry)

    job_id = await manager.enqueue(JOB_TYPE_INFERENCE, {"jobId": "t1", "chatId": "c1"})
    await asyncio.wait_for(manager.wait_idle(), timeout=5)
    job = await manager.get(job_id)
    await client.aclose()

    assert job.status == JobStatus.COMPLETED
    assert job.result["output"] == {"image": "BASE64..."}
    assert notifier.deliveries == [("c1", "BASE64...", None)]


async def test_generate_image_job_times_out(
    test_settings, job_repository, registry, notifier, training_repository
):
    client = runpod_client({"t2": [{"status": "IN_PROGRESS"}]})
    register_job_handlers(
        configure(test_settings),
        notifier=notifier,
        runpod_client=client,
        trainings=training_repository,
        registry=registry,
    )
    manager = JobManager(job_repository, registry)

    job_id = await job_repository.enqueue(JOB_TYPE_INFERENCE, {"jobId": "t2", "chatId": "c2"})
    job = await run_to_completion(manager, job_id)
    await client.aclose()

    assert job.status == JobStatus.FAILED
    assert job.error == "Max polling attempts (3) reached for job t2"
    assert notifier.messages == [("c2", INFERENCE_FAILED_MESSAGE)]


async def test_only_configured_endpoints_are_registered(
    test_settings, registry, notifier, training_repository
):
    settings = test_settings.model_copy(update={"runpod_inference_endpoint_id": "infer-ep"})

    register_job_handlers(
        settings,
        notifier=notifier,
        runpod_client=httpx.AsyncClient(),
        trainings=training_repository,
        registry=registry,
    )

    assert registry.list() == [JOB_TYPE_INFERENCE]
    assert registry.resolve(JOB_TYPE_TRAINING) is None
    assert registry.resolve(JOB_TYPE_STYLE_CHECK) is None


async def test_style_check_registered_only_with_artifact_store(
    test_settings, notifier, training_repository
):
    settings = test_settings.model_copy(update={"runpod_check_style_endpoint_id": "style-ep"})
    client = httpx.AsyncClient()

    without_store = JobRegistry()
    register_job_handlers(
        settings,
        notifier=notifier,
        runpod_client=client,
        trainings=training_repository,
        registry=without_store,
    )

    with_store = JobRegistry()
    register_job_handlers(
        settings,
        notifier=notifier,
        runpod_client=client,
        trainings=training_repository,
        artifacts=AsyncMock(),
        registry=with_store,
    )
    await client.aclose()

    assert without_store.resolve(JOB_TYPE_STYLE_CHECK) is None
    assert with_store.list() == [JOB_TYPE_STYLE_CHECK]
