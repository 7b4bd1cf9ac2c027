"""Project classification and the build runner."""

from sitecast.build.builder import Builder, resolve_publish_dir
from sitecast.build.detector import DETECTION_RULES, DetectionRule, detect_project

__all__ = [
    "Builder",
    "resolve_publish_dir",
    "DETECTION_RULES",
    "DetectionRule",
    "detect_project",
]
