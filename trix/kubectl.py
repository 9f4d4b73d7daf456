"""Thin async wrapper around the kubectl binary.

The investigation tools read Trivy Operator reports straight from the
cluster with ``kubectl get ... -o json``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
from typing import Any

logger = logging.getLogger("trix.kubectl")

VULNERABILITY_REPORTS = "vulnerabilityreports.aquasecurity.github.io"
CONFIG_AUDIT_REPORTS = "configauditreports.aquasecurity.github.io"


class KubectlError(Exception):
    """kubectl is missing, failed, or printed something that is not JSON."""


class Kubectl:
    def __init__(self, binary: str = "kubectl", timeout: float = 60.0, context: str | None = None) -> None:
        self.binary = binary
        self.timeout = timeout
        self.context = context

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None

    async def run(self, *args: str) -> str:
        """Run kubectl with ``args`` and return stdout."""
        cmd = [self.binary]
        if self.context:
            cmd += ["--context", self.context]
        cmd += list(args)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise KubectlError(f"kubectl not found at '{self.binary}'") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise KubectlError(f"kubectl timed out after {self.timeout}s: {' '.join(args)}")
        except asyncio.CancelledError:
            proc.kill()
            await proc.wait()
            raise

        if proc.returncode != 0:
            err = stderr.decode(errors="replace").strip()
            raise KubectlError(f"kubectl {' '.join(args)} failed (exit {proc.returncode}): {err}")
        return stdout.decode(errors="replace")

    async def get_json(self, resource: str, name: str | None = None, namespace: str | None = None) -> dict[str, Any]:
        args = ["get", resource]
        if name:
            args.append(name)
        if namespace:
            args += ["--namespace", namespace]
        elif not name:
            args.append("--all-namespaces")
        args += ["-o", "json"]

        out = await self.run(*args)
        try:
            return json.loads(out)
        except ValueError as e:
            raise KubectlError(f"kubectl returned invalid JSON: {e}") from e

    async def list_items(self, resource: str, namespace: str | None = None) -> list[dict[str, Any]]:
        data = await self.get_json(resource, namespace=namespace)
        return data.get("items", []) or []
