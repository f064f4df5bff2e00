"""
Tool Probe
==========
Determines whether a verification tool is available in the target project.

Detection is read-only and deterministic — same project always yields the
same answer. No network, no subprocesses. Pure file inspection.

Signals:
    - declared dependency in package.json (dependencies ∪ devDependencies)
    - required config file present (e.g. tsconfig.json)
    - npm script present (build / test / start / dev)

Absence is a normal outcome: every probe returns a value instead of
raising, and a malformed package.json simply means "not installed".
"""
import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

PACKAGE_JSON = "package.json"


def read_package_json(project_root: str) -> Optional[dict]:
    """Return the parsed package.json, or None if missing or malformed."""
    path = os.path.join(project_root, PACKAGE_JSON)
    if not os.path.isfile(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not parse %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def declared_dependencies(project_root: str) -> dict[str, str]:
    """Merged dependencies and devDependencies of the project."""
    package = read_package_json(project_root)
    if package is None:
        return {}
    deps: dict[str, str] = {}
    for section in ("dependencies", "devDependencies"):
        values = package.get(section)
        if isinstance(values, dict):
            deps.update(values)
    return deps


def package_exists(project_root: str, package_name: str) -> bool:
    """True if ``package_name`` is a declared dependency of the project."""
    return bool(declared_dependencies(project_root).get(package_name))


def any_package_exists(project_root: str, *package_names: str) -> bool:
    deps = declared_dependencies(project_root)
    return any(deps.get(name) for name in package_names)


def has_file(project_root: str, filename: str) -> bool:
    return os.path.isfile(os.path.join(project_root, filename))


def npm_script(project_root: str, script: str) -> Optional[str]:
    """Return the command string of an npm script, or None."""
    package = read_package_json(project_root)
    if package is None:
        return None
    scripts = package.get("scripts")
    if not isinstance(scripts, dict):
        return None
    value = scripts.get(script)
    return value if isinstance(value, str) and value.strip() else None


# ---------------------------------------------------------------------------
# Build command detection
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class BuildCommand:
    command: str
    args: tuple[str, ...]


# Framework signal → build command (first match wins)
_FRAMEWORK_BUILDS: list[tuple[tuple[str, ...], BuildCommand]] = [
    (("next", "@next/core"),     BuildCommand("npx", ("next", "build"))),
    (("vite",),                  BuildCommand("npx", ("vite", "build"))),
    (("nuxt", "nuxt3"),          BuildCommand("npx", ("nuxt", "build"))),
    (("@sveltejs/kit",),         BuildCommand("npx", ("svelte-kit", "build"))),
    (("react-scripts",),         BuildCommand("npx", ("react-scripts", "build"))),
    (("webpack", "webpack-cli"), BuildCommand("npx", ("webpack", "--mode", "production"))),
]


def detect_build_command(project_root: str) -> Optional[BuildCommand]:
    """
    Pick the build command for the project.

    An explicit ``build`` npm script wins; otherwise the first framework
    found among the declared dependencies decides. None when neither
    applies.
    """
    if read_package_json(project_root) is None:
        return None

    if npm_script(project_root, "build"):
        return BuildCommand("npm", ("run", "build"))

    deps = declared_dependencies(project_root)
    for signals, build in _FRAMEWORK_BUILDS:
        if any(deps.get(signal) for signal in signals):
            return build
    return None
