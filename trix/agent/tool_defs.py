from __future__ import annotations

import logging
from collections import Counter
from typing import Any

from ..kubectl import CONFIG_AUDIT_REPORTS, VULNERABILITY_REPORTS, Kubectl
from ..llm.models import Tool
from .tools import ToolRegistry

logger = logging.getLogger("trix.agent.tools")

SEVERITIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW", "UNKNOWN")
MAX_FINDINGS = 200


def get_tool_definitions() -> list[Tool]:
    return [
        _query_findings_def(),
        _findings_summary_def(),
        _get_resource_def(),
    ]


def _query_findings_def() -> Tool:
    return Tool(
        name="query_findings",
        description=(
            "List vulnerability findings from Trivy Operator VulnerabilityReports in the cluster. "
            "Each finding has the CVE id, severity, affected package, installed and fixed versions, "
            "and the workload/image it was found in."
        ),
        parameters={
            "type": "object",
            "properties": {
                "severity": {
                    "type": "string",
                    "description": "Comma-separated severities to include, e.g. 'CRITICAL,HIGH'.",
                },
                "namespace": {"type": "string", "description": "Only this namespace. Omit for all."},
                "cve": {"type": "string", "description": "Only findings for this vulnerability id."},
                "limit": {
                    "type": "integer",
                    "description": f"Maximum findings to return (default 50, max {MAX_FINDINGS}).",
                },
            },
        },
    )


def _findings_summary_def() -> Tool:
    return Tool(
        name="findings_summary",
        description=(
            "Summarize security findings: vulnerability counts by severity, the most affected "
            "workloads, and configuration audit (misconfiguration) counts by severity."
        ),
        parameters={
            "type": "object",
            "properties": {
                "namespace": {"type": "string", "description": "Only this namespace. Omit for all."},
            },
        },
    )


def _get_resource_def() -> Tool:
    return Tool(
        name="get_resource",
        description="Fetch a Kubernetes resource (metadata and spec) to inspect how a workload is configured.",
        parameters={
            "type": "object",
            "properties": {
                "kind": {"type": "string", "description": "Resource kind, e.g. 'deployment', 'pod'."},
                "name": {"type": "string", "description": "Resource name."},
                "namespace": {"type": "string", "description": "Namespace of the resource."},
            },
            "required": ["kind", "name"],
        },
    )


def _parse_severities(severity: str | None) -> set[str]:
    if not severity:
        return set()
    return {s.strip().upper() for s in severity.split(",") if s.strip()}


def _workload(report: dict[str, Any]) -> str:
    meta = report.get("metadata", {})
    labels = meta.get("labels", {}) or {}
    kind = labels.get("trivy-operator.resource.kind", "")
    name = labels.get("trivy-operator.resource.name", meta.get("name", ""))
    return f"{meta.get('namespace', '')}/{kind}/{name}".replace("//", "/")


class FindingsTools:
    """Handlers for the built-in tools, reading reports through kubectl."""

    def __init__(self, kubectl: Kubectl) -> None:
        self.kubectl = kubectl

    async def query_findings(
        self,
        severity: str | None = None,
        namespace: str | None = None,
        cve: str | None = None,
        limit: int = 50,
    ) -> dict[str, Any]:
        wanted = _parse_severities(severity)
        limit = max(1, min(int(limit), MAX_FINDINGS))
        reports = await self.kubectl.list_items(VULNERABILITY_REPORTS, namespace)

        findings: list[dict[str, Any]] = []
        for report in reports:
            body = report.get("report", {}) or {}
            artifact = body.get("artifact", {}) or {}
            image = artifact.get("repository", "")
            if artifact.get("tag"):
                image = f"{image}:{artifact['tag']}"
            for vuln in body.get("vulnerabilities", []) or []:
                sev = str(vuln.get("severity", "UNKNOWN")).upper()
                if wanted and sev not in wanted:
                    continue
                if cve and vuln.get("vulnerabilityID") != cve:
                    continue
                findings.append({
                    "id": vuln.get("vulnerabilityID", ""),
                    "severity": sev,
                    "package": vuln.get("resource", ""),
                    "installed": vuln.get("installedVersion", ""),
                    "fixed": vuln.get("fixedVersion", ""),
                    "title": vuln.get("title", ""),
                    "workload": _workload(report),
                    "image": image,
                })

        order = {s: i for i, s in enumerate(SEVERITIES)}
        findings.sort(key=lambda f: (order.get(f["severity"], len(order)), f["id"]))
        logger.info(f"query_findings: {len(findings)} match(es) across {len(reports)} report(s)")
        return {"total": len(findings), "returned": min(limit, len(findings)), "findings": findings[:limit]}

    async def findings_summary(self, namespace: str | None = None) -> dict[str, Any]:
        vuln_reports = await self.kubectl.list_items(VULNERABILITY_REPORTS, namespace)
        audit_reports = await self.kubectl.list_items(CONFIG_AUDIT_REPORTS, namespace)

        by_severity: Counter[str] = Counter()
        by_workload: Counter[str] = Counter()
        for report in vuln_reports:
            summary = (report.get("report", {}) or {}).get("summary", {}) or {}
            for sev in SEVERITIES:
                count = int(summary.get(f"{sev.lower()}Count", 0) or 0)
                by_severity[sev] += count
                by_workload[_workload(report)] += count

        misconfigs: Counter[str] = Counter()
        for report in audit_reports:
            summary = (report.get("report", {}) or {}).get("summary", {}) or {}
            for sev in SEVERITIES:
                misconfigs[sev] += int(summary.get(f"{sev.lower()}Count", 0) or 0)

        return {
            "vulnerability_reports": len(vuln_reports),
            "vulnerabilities_by_severity": {s: by_severity[s] for s in SEVERITIES},
            "most_affected_workloads": [
                {"workload": w, "vulnerabilities": n} for w, n in by_workload.most_common(10) if n
            ],
            "config_audit_reports": len(audit_reports),
            "misconfigurations_by_severity": {s: misconfigs[s] for s in SEVERITIES},
        }

    async def get_resource(self, kind: str, name: str, namespace: str | None = None) -> dict[str, Any]:
        obj = await self.kubectl.get_json(kind, name=name, namespace=namespace)
        meta = obj.get("metadata", {}) or {}
        meta.pop("managedFields", None)
        return {
            "apiVersion": obj.get("apiVersion"),
            "kind": obj.get("kind"),
            "metadata": meta,
            "spec": obj.get("spec", {}),
        }


def register_builtin_tools(registry: ToolRegistry, kubectl: Kubectl) -> FindingsTools:
    handlers = FindingsTools(kubectl)
    for tool in get_tool_definitions():
        registry.register(tool, getattr(handlers, tool.name))
    return handlers
