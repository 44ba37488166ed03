"""
Sequence definitions for timelines.
Builds timelines from JSON-compatible dicts and stores them as JSON files.
"""

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import get_settings
from .scheduler import Scheduler
from .timeline import Timeline

logger = logging.getLogger(__name__)

ACTION_KEYS = ("sleep", "call", "animate", "launch", "wait")


class SequenceError(ValueError):
    """A sequence definition is malformed or references something unknown."""


def _action_key(entry: Any, index: int, name: str) -> str:
    if not isinstance(entry, dict):
        raise SequenceError(f"{name}[{index}]: action must be an object, got {entry!r}")
    keys = [key for key in ACTION_KEYS if key in entry]
    if len(keys) != 1:
        raise SequenceError(
            f"{name}[{index}]: expected exactly one of {', '.join(ACTION_KEYS)}, got {sorted(entry)}"
        )
    return keys[0]


def validate_definition(definition: Any, path: str = "sequence") -> int:
    """
    Check the structure of a sequence definition.

    Returns:
        Total number of actions, nested sequences included
    """
    if not isinstance(definition, dict):
        raise SequenceError(f"{path}: sequence must be an object")
    actions = definition.get("actions")
    if not isinstance(actions, list):
        raise SequenceError(f"{path}: 'actions' must be a list")

    name = definition.get("name") or path
    count = 0
    for index, entry in enumerate(actions):
        key = _action_key(entry, index, name)
        value = entry[key]
        count += 1
        if key == "sleep":
            if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
                raise SequenceError(f"{name}[{index}]: sleep needs a non-negative number of ms")
        elif key == "call":
            if not isinstance(value, str):
                raise SequenceError(f"{name}[{index}]: call needs a handler name")
            if not isinstance(entry.get("args", []), list):
                raise SequenceError(f"{name}[{index}]: call args must be a list")
        elif key == "animate":
            if not isinstance(value, list):
                raise SequenceError(f"{name}[{index}]: animate needs a list of animations")
            for anim in value:
                if not isinstance(anim, dict) or "target" not in anim or not isinstance(anim.get("style"), dict):
                    raise SequenceError(f"{name}[{index}]: animation needs 'target' and 'style'")
                for prop, end in anim["style"].items():
                    if not isinstance(end, (int, float)) or isinstance(end, bool):
                        raise SequenceError(f"{name}[{index}]: style {prop!r} must be a number")
        else:
            count += validate_definition(value, f"{name}[{index}].{key}")
    return count


def build_timeline(
    definition: Dict[str, Any],
    handlers: Mapping[str, Callable[..., Any]],
    targets: Mapping[str, Any],
    scheduler: Optional[Scheduler] = None,
    animator: Optional[Any] = None,
) -> Timeline:
    """
    Build a Timeline from a sequence definition.

    Args:
        definition: {"name": str, "actions": [...]} (see validate_definition)
        handlers: Functions available to "call" actions, by name
        targets: Animation targets by name; a defaultdict creates them on demand
        scheduler: Shared by the timeline and every nested timeline
        animator: Animation engine shared the same way

    Returns:
        A READY timeline
    """
    validate_definition(definition)
    return _build(definition, handlers, targets, scheduler, animator)


def _build(definition, handlers, targets, scheduler, animator) -> Timeline:
    name = definition.get("name", "sequence")
    timeline = Timeline(name, scheduler=scheduler, animator=animator)

    for index, entry in enumerate(definition["actions"]):
        key = _action_key(entry, index, name)
        value = entry[key]
        if key == "sleep":
            timeline.sleep(value)
        elif key == "call":
            if value not in handlers:
                raise SequenceError(f"{name}[{index}]: unknown handler {value!r}")
            timeline.call(handlers[value], *entry.get("args", []))
        elif key == "animate":
            animations = []
            for anim in value:
                try:
                    target = targets[anim["target"]]
                except KeyError:
                    raise SequenceError(f"{name}[{index}]: unknown target {anim['target']!r}")
                animations.append((target, anim["style"], anim.get("options", {})))
            timeline.animate(animations)
        else:
            child = _build(value, handlers, targets, scheduler, animator)
            getattr(timeline, key)(child)

    return timeline


class SequenceStorage:
    """
    Manages sequence definitions stored as JSON files.
    """

    def __init__(self, storage_dir: Optional[str] = None):
        """
        Initialize sequence storage.

        Args:
            storage_dir: Directory for sequence files. Defaults to the configured sequence_dir.
        """
        self.storage_dir = Path(storage_dir or get_settings().sequence_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Sequence storage directory: {self.storage_dir}")

    def _path_for(self, name: str) -> Path:
        safe_name = "".join(c if c.isalnum() or c in "-_" else "_" for c in name)
        return self.storage_dir / f"{safe_name}.json"

    def save(self, definition: Dict[str, Any]) -> str:
        """
        Validate and save a definition under its name.

        Returns:
            Path to saved file
        """
        validate_definition(definition)
        data = dict(definition)
        data.setdefault("name", "sequence")
        data["modified_at"] = time.time()

        filepath = self._path_for(data["name"])
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

        logger.info(f"Saved sequence: {filepath}")
        return str(filepath)

    def load(self, name: str) -> Optional[Dict[str, Any]]:
        """Load a definition by name, or None if missing or unreadable."""
        filepath = self._path_for(name)
        if not filepath.exists():
            logger.warning(f"Sequence not found: {name}")
            return None
        return self._load_file(filepath)

    def load_file(self, filepath: str) -> Optional[Dict[str, Any]]:
        return self._load_file(Path(filepath))

    def _load_file(self, filepath: Path) -> Optional[Dict[str, Any]]:
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
            validate_definition(data)
        except (OSError, ValueError) as e:
            logger.error(f"Error loading {filepath}: {e}")
            return None
        logger.info(f"Loaded sequence: {data.get('name')} from {filepath}")
        return data

    def list_sequences(self) -> List[Dict[str, Any]]:
        """
        List all stored sequences, newest first.

        Returns:
            List of summaries (name, actions, modified_at, filepath)
        """
        sequences = []
        for filepath in self.storage_dir.glob("*.json"):
            try:
                with open(filepath, "r", encoding="utf-8") as f:
                    data = json.load(f)
                sequences.append({
                    "name": data.get("name", filepath.stem),
                    "actions": validate_definition(data),
                    "modified_at": data.get("modified_at", 0),
                    "filepath": str(filepath),
                })
            except (OSError, ValueError) as e:
                logger.warning(f"Error reading {filepath}: {e}")

        sequences.sort(key=lambda s: s["modified_at"], reverse=True)
        return sequences

    def delete(self, name: str) -> bool:
        filepath = self._path_for(name)
        if not filepath.exists():
            logger.warning(f"Sequence not found for deletion: {name}")
            return False
        filepath.unlink()
        logger.info(f"Deleted sequence: {filepath}")
        return True
