# flowguard/agents/security_agent.py

from __future__ import annotations
import ipaddress
import logging
import math
import re
from collections import Counter
from typing import Any, Iterable, Iterator, List, Optional, Tuple
from urllib.parse import urlsplit

from flowguard.core.config import Settings
from flowguard.core.errors import SecurityPolicyViolation
from flowguard.core.models import AutomationGraph, ScanResult

logger = logging.getLogger(__name__)

# Known secret formats. Values must travel through `credentials`, never `parameters`.
SECRET_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("OpenAI-style API key", re.compile(r"\bsk-(?:proj-|live-|test-)?[A-Za-z0-9_\-]{20,}")),
    ("AWS access key id", re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b")),
    ("GitHub token", re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,}\b")),
    ("Slack token", re.compile(r"\bxox[abposr]-[A-Za-z0-9\-]{10,}")),
    ("Google API key", re.compile(r"\bAIza[0-9A-Za-z_\-]{35}\b")),
    ("Stripe key", re.compile(r"\b(?:sk|rk)_(?:live|test)_[A-Za-z0-9]{16,}")),
    ("private key block", re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----")),
    ("JSON web token", re.compile(r"\beyJ[A-Za-z0-9_\-]{8,}\.[A-Za-z0-9_\-]{8,}\.[A-Za-z0-9_\-]{8,}")),
    ("bearer token", re.compile(r"(?i)\bbearer\s+[A-Za-z0-9_\-\.=]{20,}")),
]

# Parameter keys (or name/value header entries) that must not hold literal values.
SENSITIVE_KEY = re.compile(
    r"(?i)^(?:x-)?(?:api[-_]?key|apikey|secret|client[-_]?secret|password|passwd|token|"
    r"access[-_]?token|auth[-_]?token|private[-_]?key|authorization)$"
)

# Arbitrary code/shell execution and unrestricted filesystem access.
DENIED_NODE_SUFFIXES = {
    "executecommand",
    "ssh",
    "code",
    "function",
    "functionitem",
    "readwritefile",
    "readbinaryfile",
    "readbinaryfiles",
    "writebinaryfile",
    "localfiletrigger",
    "toolcode",
}

DENIED_HOSTS = {"localhost", "metadata.google.internal", "metadata"}

_TOKEN_CHARS = re.compile(r"^[A-Za-z0-9+/=_\-\.]+$")
_URL = re.compile(r"(?i)\b(?:https?|ftp|wss?)://[^\s\"'<>]+")
_MIN_ENTROPY_LEN = 32
_ENTROPY_THRESHOLD = 4.0


def _is_expression(value: str) -> bool:
    # n8n expressions ("={{ $json.x }}") are resolved at run time
    return value.startswith("=") or "{{" in value


def shannon_entropy(value: str) -> float:
    if not value:
        return 0.0
    counts = Counter(value)
    total = len(value)
    return -sum((n / total) * math.log2(n / total) for n in counts.values())


def looks_like_secret(value: str, random_tokens: bool = False) -> Optional[str]:
    """
    Return a label for the secret kind `value` resembles, else None.
    Random-looking tokens only count when `random_tokens` is set, i.e. under a
    sensitive key or in a name/value entry; ids such as Sheets documentId are not secrets.
    """
    for label, pattern in SECRET_PATTERNS:
        if pattern.search(value):
            return label
    if not random_tokens:
        return None
    token = value.strip()
    if (
        len(token) >= _MIN_ENTROPY_LEN
        and _TOKEN_CHARS.match(token)
        and any(c.isdigit() for c in token)
        and any(c.isalpha() for c in token)
        and shannon_entropy(token) >= _ENTROPY_THRESHOLD
    ):
        return "high-entropy token"
    return None


def _walk(value: Any, path: str) -> Iterator[Tuple[str, Any, Optional[str], bool]]:
    """Yield (path, leaf, owning key, is name/value entry) for every leaf under `value`."""
    if isinstance(value, dict):
        for key, item in value.items():
            yield from _walk(item, f"{path}.{key}")
        # header/query style entries: {"name": "Authorization", "value": "..."}
        name, val = value.get("name"), value.get("value")
        if isinstance(name, str) and isinstance(val, str):
            yield f"{path}.value", val, name, True
    elif isinstance(value, list):
        for idx, item in enumerate(value):
            yield from _walk(item, f"{path}[{idx}]")
    else:
        key = path.rsplit(".", 1)[-1].split("[", 1)[0]
        yield path, value, key, False


def _host_denied(host: str, denied: Iterable[str], block_private: bool) -> bool:
    host = host.lower().rstrip(".")
    if host in denied or any(host.endswith("." + d) for d in denied):
        return True
    if not block_private:
        return False
    try:
        addr = ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return (
        addr.is_loopback or addr.is_private or addr.is_link_local
        or addr.is_unspecified or addr.is_reserved
    )


class SecurityAgent:
    """
    Policy checks over an already structurally valid graph.
    Every check runs; all findings are reported together in `reason`.
    """

    @staticmethod
    def denied_node_suffixes() -> set[str]:
        extra = {t.lower().rsplit(".", 1)[-1] for t in Settings.DENIED_NODE_TYPES}
        return DENIED_NODE_SUFFIXES | extra

    @staticmethod
    def denied_hosts() -> set[str]:
        return DENIED_HOSTS | {h.lower() for h in Settings.DENIED_HOSTS}

    @staticmethod
    def find_literal_secrets(graph: AutomationGraph) -> List[str]:
        findings: List[str] = []
        for node in graph.nodes:
            for path, leaf, key, is_entry in _walk(node.parameters, "parameters"):
                if not isinstance(leaf, str) or not leaf.strip() or _is_expression(leaf):
                    continue
                sensitive = bool(key and SENSITIVE_KEY.match(key))
                label = looks_like_secret(leaf, random_tokens=sensitive or is_entry)
                if label is None and sensitive and len(leaf.strip()) >= 8:
                    label = f"literal value for '{key}'"
                finding = f"node '{node.name}' {path} contains a {label}; use credentials instead"
                if label and finding not in findings:
                    findings.append(finding)
        return findings

    @staticmethod
    def find_denied_node_types(graph: AutomationGraph) -> List[str]:
        denied = SecurityAgent.denied_node_suffixes()
        return [
            f"node '{node.name}' uses disallowed type '{node.type}'"
            for node in graph.nodes
            if node.type.lower().rsplit(".", 1)[-1] in denied
        ]

    @staticmethod
    def find_denied_hosts(graph: AutomationGraph) -> List[str]:
        denied = SecurityAgent.denied_hosts()
        findings: List[str] = []
        for node in graph.nodes:
            for path, leaf, _, _ in _walk(node.parameters, "parameters"):
                if not isinstance(leaf, str) or _is_expression(leaf):
                    continue
                for url in _URL.findall(leaf):
                    try:
                        host = urlsplit(url).hostname or ""
                    except ValueError:
                        continue
                    finding = f"node '{node.name}' {path} targets blocked host '{host}'"
                    if (
                        host
                        and finding not in findings
                        and _host_denied(host, denied, Settings.BLOCK_PRIVATE_HOSTS)
                    ):
                        findings.append(finding)
        return findings

    @staticmethod
    def scan(graph: AutomationGraph) -> ScanResult:
        try:
            findings = (
                SecurityAgent.find_literal_secrets(graph)
                + SecurityAgent.find_denied_node_types(graph)
                + SecurityAgent.find_denied_hosts(graph)
            )
        except RecursionError:
            return ScanResult(safe=False, reason="node parameters are nested too deeply to scan")
        if findings:
            return ScanResult(safe=False, reason="; ".join(findings))
        return ScanResult(safe=True)

    @staticmethod
    def enforce(graph: AutomationGraph) -> None:
        result = SecurityAgent.scan(graph)
        if not result.safe:
            logger.warning("Security scan failed for '%s': %s", graph.name, result.reason)
            raise SecurityPolicyViolation(result.reason or "Workflow failed the security scan.")
