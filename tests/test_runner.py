"""Tests for the controller runner."""

import asyncio
from collections.abc import Callable
from typing import Optional

import httpx
import pytest

from agent_clientcert.controller import (
    ClientCertificateController,
    ControllerRunner,
    InMemoryRecorder,
)
from agent_clientcert.core.errors import StoreUnavailableError
from agent_clientcert.core.models import (
    ClientCertOptions,
    ControllerRuntimeState,
    CSROptions,
    ReconcileState,
)
from agent_clientcert.csr import InMemoryCSRControl
from agent_clientcert.store import InMemorySecretStore, KubeSecretStore

from .conftest import (
    TEST_ADDITIONAL_DATA,
    TEST_NAMESPACE,
    TEST_SECRET_NAME,
    TEST_SUBJECT,
)


class FakeController:
    """Controller stand-in returning scripted results."""

    secret_key = "testns/testsecret"

    def __init__(self, results: list, delay: float = 0) -> None:
        self.results = list(results)
        self.delay = delay
        self.calls: list[Optional[str]] = []
        self.state = ControllerRuntimeState()

    async def reconcile(self, key: Optional[str] = None) -> ReconcileState:
        self.calls.append(key)
        if self.delay:
            await asyncio.sleep(self.delay)
        result = self.results.pop(0) if self.results else ReconcileState.VALID
        if isinstance(result, Exception):
            raise result
        return result


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    async def _wait() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_wait(), timeout=timeout)


async def test_run_once_tracks_failures():
    """Test failure counting and backoff."""
    controller = FakeController(
        [StoreUnavailableError("down"), StoreUnavailableError("down"), ReconcileState.VALID]
    )
    runner = ControllerRunner(controller, backoff_base=1.0, backoff_max=1.5)

    assert runner.backoff() == 0.0
    assert await runner.run_once() is None
    assert runner.consecutive_failures == 1
    assert not runner.ready
    assert runner.backoff() == 1.0

    assert await runner.run_once() is None
    assert runner.backoff() == 1.5

    assert await runner.run_once() == ReconcileState.VALID
    assert runner.ready
    assert runner.last_state == ReconcileState.VALID


async def test_run_once_timeout():
    """Test that a pass exceeding the deadline is cancelled."""
    controller = FakeController([ReconcileState.VALID], delay=10)
    runner = ControllerRunner(controller, reconcile_timeout=0.05)

    assert await runner.run_once() is None
    assert runner.consecutive_failures == 1


async def test_run_once_propagates_unexpected_errors():
    """Test that programming errors are not retried silently."""
    runner = ControllerRunner(FakeController([ValueError("bug")]))
    with pytest.raises(ValueError):
        await runner.run_once()


async def test_triggers_coalesce():
    """Test that queued triggers collapse into one pass."""
    controller = FakeController([])
    runner = ControllerRunner(controller, resync_interval=100)

    runner.trigger("a")
    runner.trigger("b")
    runner.trigger("c")

    task = asyncio.create_task(runner.run())
    await wait_until(lambda: len(controller.calls) >= 1)
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert controller.calls == ["a"]


async def test_run_retries_after_failure():
    """Test that a failed pass is retried after the backoff."""
    controller = FakeController([StoreUnavailableError("down"), ReconcileState.VALID])
    runner = ControllerRunner(controller, resync_interval=100, backoff_base=0.01)

    task = asyncio.create_task(runner.run())
    await wait_until(lambda: len(controller.calls) >= 2)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert controller.calls[:2] == ["startup", "retry"]
    assert runner.ready


async def test_run_resyncs(authority):
    """Test that periodic passes complete the certificate lifecycle."""
    store = InMemorySecretStore()
    csr_control = InMemoryCSRControl(authority, auto_approve=True)
    controller = ClientCertificateController(
        client_cert_options=ClientCertOptions(
            secret_namespace=TEST_NAMESPACE,
            secret_name=TEST_SECRET_NAME,
            additional_secret_data=TEST_ADDITIONAL_DATA,
        ),
        csr_options=CSROptions(generate_name="test-", subject=TEST_SUBJECT),
        csr_control=csr_control,
        secret_store=store,
        recorder=InMemoryRecorder(),
    )
    runner = ControllerRunner(controller, resync_interval=0.01)

    task = asyncio.create_task(runner.run())
    await wait_until(lambda: store.get(TEST_NAMESPACE, TEST_SECRET_NAME) is not None)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert csr_control.submissions == 1
    assert store.get(TEST_NAMESPACE, TEST_SECRET_NAME).has_certificate()


async def test_watches_trigger_reconcile(authority):
    """Test that signing request changes trigger a pass."""
    store = InMemorySecretStore()
    csr_control = InMemoryCSRControl(authority)
    controller = ClientCertificateController(
        client_cert_options=ClientCertOptions(
            secret_namespace=TEST_NAMESPACE,
            secret_name=TEST_SECRET_NAME,
            additional_secret_data=TEST_ADDITIONAL_DATA,
        ),
        csr_options=CSROptions(generate_name="test-", subject=TEST_SUBJECT),
        csr_control=csr_control,
        secret_store=store,
        recorder=InMemoryRecorder(),
    )
    runner = ControllerRunner(controller, resync_interval=100)
    runner.start_watches()

    task = asyncio.create_task(runner.run())
    await wait_until(lambda: controller.state.is_pending)
    csr_control.approve(controller.state.pending_request_name)

    await wait_until(
        lambda: "ClientCertificateCreated" in controller.recorder.reasons()
    )
    assert store.get(TEST_NAMESPACE, TEST_SECRET_NAME).has_certificate()
    assert csr_control.submissions == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    await runner.close()


class FailingWatchStore(InMemorySecretStore):
    """Store whose watch fails with an unexpected error."""

    def __init__(self) -> None:
        super().__init__()
        self.connects = 0

    async def subscribe(self, namespace: str, name: str):
        self.connects += 1
        raise RuntimeError("watch broke")
        yield ""


def watch_controller(store, csr_control) -> ClientCertificateController:
    return ClientCertificateController(
        client_cert_options=ClientCertOptions(
            secret_namespace=TEST_NAMESPACE,
            secret_name=TEST_SECRET_NAME,
            additional_secret_data=TEST_ADDITIONAL_DATA,
        ),
        csr_options=CSROptions(generate_name="test-", subject=TEST_SUBJECT),
        csr_control=csr_control,
        secret_store=store,
        recorder=InMemoryRecorder(),
    )


async def test_watch_reconnects_after_malformed_event(authority):
    """Test that a broken watch stream is reopened instead of ending the watch."""
    connects = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal connects
        connects += 1
        return httpx.Response(200, content=b'{"type": "MODIFIED", "object": {"metad')

    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="https://agent.example.com"
    )
    controller = watch_controller(KubeSecretStore(client), InMemoryCSRControl(authority))
    runner = ControllerRunner(controller, backoff_base=0.01)
    runner.start_watches()

    await wait_until(lambda: connects >= 3)
    assert not any(task.done() for task in runner._tasks)
    await runner.close()
    await client.aclose()


async def test_watch_survives_unexpected_error(authority, caplog):
    """Test that an unexpected watch error is logged and the watch restarted."""
    store = FailingWatchStore()
    controller = watch_controller(store, InMemoryCSRControl(authority))
    runner = ControllerRunner(controller, backoff_base=0.01)
    runner.start_watches()

    await wait_until(lambda: store.connects >= 2)
    assert not any(task.done() for task in runner._tasks)
    assert "Secret watch of testns/testsecret stopped" in caplog.text
    await runner.close()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
