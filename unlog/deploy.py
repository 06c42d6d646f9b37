"""Detection of deployment and restart events."""

from __future__ import annotations

import re

from unlog.entry import EnrichedEntry

_DEPLOY_PATTERNS = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"starting\s+(application|service|server)",
        r"listening\s+on\s+port",
        r"(deployed|deploying|deployment)\s+(version|v\d)",
        r"rolling\s+update",
        r"container\s+started",
        r"migration\s+(applied|running|complete)",
        r"version\s*[:=]\s*v?\d+\.\d+",
        r"(restarted|restart\s+complete)",
        r"pulling\s+image",
        r"(scaling|scaled)\s+(up|down|to)",
    )
)

_DEPLOY_METADATA_KEYS = ("event", "action", "type")
_DEPLOY_METADATA_VALUES = ("deploy", "restart", "rollout", "scale")


class DeployDetector:
    """Marks entries that describe deployments, restarts or scaling."""

    def detect(self, entry: EnrichedEntry) -> None:
        """Set ``is_deployment`` when metadata or the message indicates a deployment."""
        for key in _DEPLOY_METADATA_KEYS:
            if key in entry.metadata:
                value = entry.metadata[key].lower()
                if any(marker in value for marker in _DEPLOY_METADATA_VALUES):
                    entry.is_deployment = True
                    return

        if any(pattern.search(entry.message) for pattern in _DEPLOY_PATTERNS):
            entry.is_deployment = True