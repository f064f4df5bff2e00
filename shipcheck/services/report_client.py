"""
Error Transmitter
=================
Packages the DetailedErrors of a failed run into an ErrorCollection and
POSTs it to the triage endpoint.

Repository Identity:
    1. ``project.repo`` in shipcheck.config.json ("owner/repo"), if set
    2. ``git config --get remote.origin.url``, parsed for owner / repo
    3. ``repository`` field of package.json
    Branch and short commit hash come from git when available.

Best-effort Contract:
    Transmission never fails the verification run. Every outcome, including
    network errors, timeouts and non-2xx responses, is returned as a
    TransmitOutcome value and logged. Nothing is raised.
"""
import logging
import re
import subprocess
import uuid
from collections import Counter
from dataclasses import dataclass
from typing import Optional

import httpx

from shipcheck.core.config import REPORT_TIMEOUT_SECONDS, SHIPCHECK_REPORT_URL
from shipcheck.executor.tool_probe import read_package_json
from shipcheck.models.error_report import (
    DetailedError,
    ErrorCollection,
    ErrorSummary,
    RepositoryIdentity,
)

logger = logging.getLogger(__name__)

# github.com/owner/repo, git@github.com:owner/repo.git, ssh://git@host/owner/repo
_REMOTE_PATTERN = re.compile(r"[/:](?P<owner>[^/:]+)/(?P<repo>[^/]+?)(?:\.git)?/?$")


# ---------------------------------------------------------------------------
# Repository identity
# ---------------------------------------------------------------------------
def parse_remote_url(remote_url: str) -> Optional[tuple[str, str]]:
    """
    Extract (owner, repo) from a git remote URL.

    >>> parse_remote_url("git@github.com:acme/widgets.git")
    ('acme', 'widgets')
    """
    if not remote_url:
        return None
    match = _REMOTE_PATTERN.search(remote_url.strip())
    if not match:
        return None
    return match.group("owner"), match.group("repo")


def _git(project_root: str, *args: str) -> Optional[str]:
    try:
        res = subprocess.run(
            ["git", *args],
            cwd=project_root,
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("git %s failed: %s", " ".join(args), e)
        return None
    if res.returncode != 0:
        return None
    return res.stdout.strip() or None


def _package_repository(project_root: str) -> Optional[str]:
    package = read_package_json(project_root)
    if not package:
        return None
    repository = package.get("repository")
    if isinstance(repository, dict):
        repository = repository.get("url")
    return repository if isinstance(repository, str) else None


def resolve_repository_identity(
    project_root: str,
    repo_override: Optional[str] = None,
) -> Optional[RepositoryIdentity]:
    """
    Work out which repository the project belongs to.

    Returns None when neither the override, the git remote nor package.json
    name a repository.
    """
    remote_url = _git(project_root, "config", "--get", "remote.origin.url")
    branch = _git(project_root, "rev-parse", "--abbrev-ref", "HEAD")
    commit = _git(project_root, "rev-parse", "--short", "HEAD")

    parsed: Optional[tuple[str, str]] = None
    if repo_override and "/" in repo_override:
        owner, _, repo = repo_override.partition("/")
        if owner and repo:
            parsed = (owner, repo)
    if parsed is None and remote_url:
        parsed = parse_remote_url(remote_url)
    if parsed is None:
        package_repo = _package_repository(project_root)
        if package_repo:
            parsed = parse_remote_url(package_repo)

    if parsed is None:
        logger.warning("[REPORT] Could not determine repository owner/name for %s", project_root)
        return None

    return RepositoryIdentity(
        owner=parsed[0],
        repo=parsed[1],
        branch=branch,
        commit=commit,
        remote_url=remote_url,
    )


# ---------------------------------------------------------------------------
# Collection building
# ---------------------------------------------------------------------------
def build_error_collection(
    errors: list[DetailedError],
    repository: RepositoryIdentity,
    stage: Optional[str] = None,
    total_duration_ms: int = 0,
    session_id: Optional[str] = None,
) -> ErrorCollection:
    """Assemble the submission payload for one run."""
    by_task = Counter(e.task_name for e in errors)
    by_type = Counter(e.error_kind for e in errors)
    return ErrorCollection(
        session_id=session_id or uuid.uuid4().hex,
        repository=repository,
        stage=stage or "default",
        total_errors=sum(1 for e in errors if e.severity == "error"),
        total_warnings=sum(1 for e in errors if e.severity == "warning"),
        total_duration_ms=total_duration_ms,
        errors=list(errors),
        summary=ErrorSummary(by_task=dict(by_task), by_type=dict(by_type)),
    )


# ---------------------------------------------------------------------------
# Transmission
# ---------------------------------------------------------------------------
@dataclass
class TransmitOutcome:
    """Result of one transmission attempt. Never raised, always returned."""
    sent: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    response: Optional[dict] = None


def transmit(
    collection: ErrorCollection,
    url: str = SHIPCHECK_REPORT_URL,
    timeout: float = REPORT_TIMEOUT_SECONDS,
    client: Optional[httpx.Client] = None,
) -> TransmitOutcome:
    """
    POST ``collection`` to the triage endpoint.

    Parameters
    ----------
    collection : ErrorCollection
        Payload to send (serialised camelCase).
    url : str
        Triage endpoint.
    timeout : float
        Seconds before the request is abandoned.
    client : httpx.Client | None
        Pre-built client (tests); a short-lived one is created otherwise.

    Returns
    -------
    TransmitOutcome
        ``sent=True`` only for a 2xx response.
    """
    payload = collection.to_wire()
    logger.info(
        "[REPORT] Sending %d error(s) for %s to %s",
        len(collection.errors), collection.repository.slug, url,
    )

    owns_client = client is None
    http = client or httpx.Client(timeout=timeout)
    try:
        resp = http.post(url, json=payload, timeout=timeout)
    except httpx.HTTPError as e:
        logger.warning("[REPORT] Transmission failed: %s", e)
        return TransmitOutcome(sent=False, error=str(e) or type(e).__name__)
    finally:
        if owns_client:
            http.close()

    try:
        body = resp.json()
    except ValueError:
        body = None

    if not resp.is_success:
        message = body.get("error") if isinstance(body, dict) else None
        logger.warning("[REPORT] Triage service responded HTTP %d", resp.status_code)
        return TransmitOutcome(
            sent=False,
            status_code=resp.status_code,
            error=message or f"HTTP {resp.status_code}",
            response=body if isinstance(body, dict) else None,
        )

    logger.info("[REPORT] Delivered (HTTP %d)", resp.status_code)
    return TransmitOutcome(
        sent=True,
        status_code=resp.status_code,
        response=body if isinstance(body, dict) else None,
    )
