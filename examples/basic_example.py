#!/usr/bin/env python3
"""
Basic example demonstrating the client certificate lifecycle:
1. The agent starts without credentials and submits a signing request
2. The hub approves the request and the certificate is stored
3. The certificate nears expiry and is rotated
"""

import asyncio
from datetime import timedelta

from agent_clientcert import (
    ClientCertificateController,
    ControllerConfig,
    InMemoryCSRControl,
    InMemoryRecorder,
    InMemorySecretStore,
    LocalSigningAuthority,
    ReconcileState,
)
from agent_clientcert.validator.certificate import get_validity_period, parse_certificates


async def main():
    print("=== Agent Client Certificate - Basic Example ===\n")

    # ============================================================================
    # STEP 1: Set up the hub signer and the agent's secret store
    # ============================================================================
    print("1. Setting up hub signer and secret store...")
    authority = LocalSigningAuthority(validity=timedelta(days=30))
    csr_control = InMemoryCSRControl(authority)
    store = InMemorySecretStore()
    config = ControllerConfig(
        cluster_name="cluster1",
        agent_name="registration-agent",
        secret_namespace="open-cluster-management-agent",
        renewal_threshold_seconds=3600,
        hub_server="https://hub.example.com:6443",
    )
    print(f"   ✓ Secret: {config.secret_namespace}/{config.secret_name}")
    print(f"   ✓ Subject: {config.subject().common_name}\n")

    controller = ClientCertificateController.from_config(
        config, csr_control, store, recorder=InMemoryRecorder()
    )

    # ============================================================================
    # STEP 2: Bootstrap - no credentials yet
    # ============================================================================
    print("2. Reconciling without credentials...")
    state = await controller.reconcile()
    name = controller.state.pending_request_name
    print(f"   ✓ State: {state.value}")
    print(f"   ✓ Signing request: {name}\n")

    # ============================================================================
    # STEP 3: Waiting for approval
    # ============================================================================
    print("3. Reconciling while the request is pending...")
    state = await controller.reconcile()
    print(f"   ✓ State: {state.value} (no new request, {csr_control.submissions} total)\n")

    # ============================================================================
    # STEP 4: Hub approves, certificate is stored
    # ============================================================================
    print("4. Hub approves the request...")
    csr_control.approve(name)
    state = await controller.reconcile()
    bundle = store.get(config.secret_namespace, config.secret_name)
    not_before, not_after = get_validity_period(parse_certificates(bundle.certificate))
    print(f"   ✓ State: {state.value}")
    print(f"   - Valid until: {not_after.strftime('%Y-%m-%d')}")
    print(f"   - Secret fields: {sorted(bundle.data)}\n")

    # ============================================================================
    # STEP 5: Steady state
    # ============================================================================
    print("5. Reconciling with a valid certificate...")
    state = await controller.reconcile()
    print(f"   ✓ State: {state.value}\n")

    # ============================================================================
    # STEP 6: Certificate about to expire is rotated
    # ============================================================================
    print("6. Replacing the certificate with one expiring in 10 minutes...")
    data = dict(bundle.data)
    data["tls.crt"] = authority.issue(
        config.subject(), bundle.private_key, timedelta(minutes=10)
    )
    store.add(config.secret_namespace, config.secret_name, data)

    state = await controller.reconcile()
    print(f"   ✓ State: {state.value} (renewal requested)")
    csr_control.approve(controller.state.pending_request_name)
    state = await controller.reconcile()
    print(f"   ✓ State: {state.value}\n")

    if await controller.reconcile() != ReconcileState.VALID:
        print("   ✗ Rotation did not produce a valid certificate\n")
        return

    # ============================================================================
    print("=== Example Complete ===")
    print(f"\nEvents: {controller.recorder.reasons()}")
    print("\nKey takeaways:")
    print("1. The private key never leaves the agent")
    print("2. Credentials are only written once the hub has issued a certificate")
    print("3. Rotation starts before expiry and keeps the other secret fields")


if __name__ == "__main__":
    asyncio.run(main())
