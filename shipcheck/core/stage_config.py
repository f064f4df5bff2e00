"""
Stage Configuration
===================
Reads the project's ``shipcheck.config.json`` and resolves which tasks a
stage runs.

File shape::

    {
      "project": {"repo": "owner/repo"},
      "tests": {
        "preCommit": ["lint", "typecheck"],
        "prePush":   ["lint", "typecheck", "build", "website"],
        "timeouts":  {"build": 300}
      }
    }

Fallback:
    A missing or unparsable file yields the built-in defaults. A missing
    key falls back per key, so a file that only overrides ``prePush``
    keeps the default ``preCommit``.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from shipcheck.core.constants import (
    CONFIG_FILENAME,
    DEFAULT_PRE_COMMIT,
    DEFAULT_PRE_PUSH,
    STAGE_CI,
    STAGE_PRE_COMMIT,
    STAGE_PRE_PUSH,
    TASK_NAMES,
)

logger = logging.getLogger(__name__)


@dataclass
class StageConfig:
    """Resolved stage configuration for one project."""
    pre_commit: list[str] = field(default_factory=lambda: list(DEFAULT_PRE_COMMIT))
    pre_push: list[str] = field(default_factory=lambda: list(DEFAULT_PRE_PUSH))
    timeouts: dict[str, float] = field(default_factory=dict)
    repo_override: Optional[str] = None


def _string_list(value: object) -> Optional[list[str]]:
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    return None


def load_stage_config(project_root: str) -> StageConfig:
    """
    Load the stage configuration for ``project_root``.

    Never raises: unreadable or malformed files produce defaults and a
    warning in the log.
    """
    config = StageConfig()
    path = os.path.join(project_root, CONFIG_FILENAME)
    if not os.path.isfile(path):
        return config

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not parse %s, using defaults: %s", CONFIG_FILENAME, e)
        return config

    if not isinstance(data, dict):
        logger.warning("%s is not a JSON object, using defaults", CONFIG_FILENAME)
        return config

    tests = data.get("tests") if isinstance(data.get("tests"), dict) else {}
    pre_commit = _string_list(tests.get("preCommit"))
    pre_push = _string_list(tests.get("prePush"))
    if pre_commit is not None:
        config.pre_commit = pre_commit
    if pre_push is not None:
        config.pre_push = pre_push

    timeouts = tests.get("timeouts")
    if isinstance(timeouts, dict):
        for name, seconds in timeouts.items():
            if isinstance(seconds, (int, float)) and not isinstance(seconds, bool) and seconds > 0:
                config.timeouts[name] = float(seconds)

    project = data.get("project")
    if isinstance(project, dict):
        repo = project.get("repo")
        if isinstance(repo, str) and repo.strip():
            config.repo_override = repo.strip()

    return config


def resolve_stage_tasks(config: StageConfig, stage: Optional[str], run_all: bool = False) -> list[str]:
    """
    Map a stage selector onto an ordered list of task names.

    - ``run_all`` → every known task
    - ``pre-commit`` / ``pre-push`` → the configured list
    - ``ci`` → ordered union of pre-commit and pre-push
    - no stage → pre-push
    - anything else → ``[stage]`` so the runner records it as an unknown task
    """
    if run_all:
        return list(TASK_NAMES)
    if stage is None or stage == "":
        return list(config.pre_push)
    if stage == STAGE_PRE_COMMIT:
        return list(config.pre_commit)
    if stage == STAGE_PRE_PUSH:
        return list(config.pre_push)
    if stage == STAGE_CI:
        return list(dict.fromkeys(config.pre_commit + config.pre_push))
    logger.warning("Unrecognised stage selector: %s", stage)
    return [stage]
