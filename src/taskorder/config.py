"""Load optional ordering configuration from `.taskorder/config.yaml`."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .grouping import NO_SCENE
from .model import DEFAULT_STATUSES, TaskStatus

STATE_DIR_NAME = ".taskorder"
CONFIG_FILE = "config.yaml"


def load_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional config file.

    Args:
        project_dir: Project root directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    path = project_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE
    if not path.exists():
        return {}, None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        return {}, f"Unable to read {path}: {exc}"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return {}, f"{path} must contain a mapping"
    return data, None


def _get_nested(config: dict[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(key)
    return cur


def get_statuses(config: dict[str, Any]) -> list[TaskStatus]:
    """Board columns in display order.

    Unknown and duplicate entries are dropped; an empty or missing list
    falls back to all statuses.
    """
    raw = _get_nested(config, "board", "statuses")
    statuses: list[TaskStatus] = []
    if isinstance(raw, list):
        for item in raw:
            try:
                status = TaskStatus(str(item))
            except ValueError:
                continue
            if status not in statuses:
                statuses.append(status)
    return statuses or list(DEFAULT_STATUSES)


def get_done_status(config: dict[str, Any]) -> TaskStatus:
    raw = _get_nested(config, "board", "done_status")
    try:
        return TaskStatus(str(raw)) if raw is not None else TaskStatus.DONE
    except ValueError:
        return TaskStatus.DONE


def get_no_scene_label(config: dict[str, Any]) -> str:
    raw = _get_nested(config, "table", "no_scene_label")
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return NO_SCENE


def get_seed_config(config: dict[str, Any]) -> dict[str, Any]:
    """Extract the seeding block, defaulting to enabled."""
    raw = _get_nested(config, "seed")
    enabled = raw.get("enabled", True) if isinstance(raw, dict) else True
    return {"enabled": bool(enabled)}
