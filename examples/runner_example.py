#!/usr/bin/env python3
"""Runner example - the controller driven by watches and periodic resync."""

import asyncio
import logging
from pathlib import Path

from agent_clientcert import (
    ClientCertificateController,
    ControllerConfig,
    ControllerRunner,
    InMemoryCSRControl,
    InMemorySecretStore,
    LocalSigningAuthority,
)


async def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print("=== Agent Client Certificate - Runner Example ===\n")

    config = ControllerConfig.from_config(Path(__file__).parent / "agent.yaml")
    csr_control = InMemoryCSRControl(LocalSigningAuthority())
    store = InMemorySecretStore()
    controller = ClientCertificateController.from_config(config, csr_control, store)

    runner = ControllerRunner.from_config(controller, config)
    runner.start_watches()
    task = asyncio.create_task(runner.run())

    print("1. Waiting for the signing request...")
    while not controller.state.is_pending:
        await asyncio.sleep(0.1)
    print(f"   ✓ Request: {controller.state.pending_request_name}\n")

    print("2. Approving; the watch triggers the next pass...")
    csr_control.approve(controller.state.pending_request_name)
    while store.get(config.secret_namespace, config.secret_name) is None:
        await asyncio.sleep(0.1)
    print(f"   ✓ Ready: {runner.ready}")
    pruned = csr_control.prune(keep=[controller.state.pending_request_name])
    print(f"   ✓ Pruned {pruned} resolved request(s)\n")

    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    await runner.close()
    print("=== Example Complete ===")


if __name__ == "__main__":
    asyncio.run(main())
