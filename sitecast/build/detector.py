"""Build detection as an ordered rule table.

Each rule inspects the working tree and either returns a classification or
``None``; the first rule that matches wins. Detection never fails for
content reasons: malformed JSON files are treated as absent and the last
rule always matches.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sitecast.models.classification import ProjectClassification, ProjectKind

logger = logging.getLogger(__name__)

# Conventional build output directories, in priority order.
OUTPUT_DIRS: tuple[str, ...] = ("dist", "build", "out", "public", ".next")

BUILD_SCRIPT_KEYS: tuple[str, ...] = ("build", "build:prod")


def read_json(path: Path) -> dict[str, Any] | None:
    """Parse a JSON object file, or ``None`` if missing or malformed."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def build_script(
    package_json: dict[str, Any] | None, keys: tuple[str, ...] = BUILD_SCRIPT_KEYS
) -> str | None:
    """The first build command declared in package.json under *keys*, if any."""
    scripts = (package_json or {}).get("scripts")
    if not isinstance(scripts, dict):
        return None
    for key in keys:
        command = scripts.get(key)
        if isinstance(command, str) and command.strip():
            return command
    return None


def find_output_dir(tree: Path) -> str | None:
    """First conventional output directory present in *tree*."""
    for name in OUTPUT_DIRS:
        if (tree / name).is_dir():
            return name
    return None


def _inside(tree: Path, relative: str) -> bool:
    root = tree.resolve()
    target = (tree / relative).resolve()
    return target == root or root in target.parents


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


def _prebuilt_output(tree: Path) -> ProjectClassification | None:
    if read_json(tree / "package.json") is None:
        return None
    output = find_output_dir(tree)
    if output is None:
        return None
    return ProjectClassification(kind=ProjectKind.PREBUILT_STATIC, publish_dir=output)


def _build_script(tree: Path) -> ProjectClassification | None:
    if build_script(read_json(tree / "package.json")) is None:
        return None
    return ProjectClassification(kind=ProjectKind.BUILDABLE_APPLICATION)


def _hosting_config(tree: Path) -> ProjectClassification | None:
    hosting = (read_json(tree / "firebase.json") or {}).get("hosting")
    public = hosting.get("public") if isinstance(hosting, dict) else None
    if not isinstance(public, str) or not public:
        return None
    if not _inside(tree, public):
        logger.warning("Ignoring hosting public dir outside the tree: %r", public)
        return None
    return ProjectClassification(kind=ProjectKind.PREBUILT_STATIC, publish_dir=public)


def _index_html(tree: Path) -> ProjectClassification | None:
    if not (tree / "index.html").is_file():
        return None
    return ProjectClassification(kind=ProjectKind.PREBUILT_STATIC, publish_dir=".")


def _default(tree: Path) -> ProjectClassification | None:
    return ProjectClassification(kind=ProjectKind.PREBUILT_STATIC, publish_dir=".")


@dataclass(frozen=True)
class DetectionRule:
    name: str
    match: Callable[[Path], ProjectClassification | None]


DETECTION_RULES: tuple[DetectionRule, ...] = (
    DetectionRule("prebuilt-output", _prebuilt_output),
    DetectionRule("build-script", _build_script),
    DetectionRule("hosting-config", _hosting_config),
    DetectionRule("index-html", _index_html),
    DetectionRule("default", _default),
)


def detect_project(
    tree: Path, rules: tuple[DetectionRule, ...] = DETECTION_RULES
) -> ProjectClassification:
    """Classify *tree*; the first matching rule wins."""
    tree = Path(tree)
    for rule in rules:
        result = rule.match(tree)
        if result is not None:
            classification = result.model_copy(update={"rule": rule.name})
            logger.info(
                "Classified %s as %s (rule=%s, publish_dir=%s)",
                tree.name,
                classification.kind.value,
                rule.name,
                classification.publish_dir,
            )
            return classification
    # Only reachable with a custom rule table lacking a catch-all.
    return ProjectClassification(
        kind=ProjectKind.PREBUILT_STATIC, publish_dir=".", rule="default"
    )
