"""File-backed data backend for local use.

Data is stored in:
- .zhuzh/directory.yaml: people and projects (hand-edited)
- .zhuzh/allocations.json: planned hours
- .zhuzh/time_entries.json: live timers and manual logs

Example directory.yaml:

    org_id: acme
    people:
      - id: u1
        name: Ryan Daniels
        role: pm
        job_title: Producer
        aliases: rd
    projects:
      - id: p1
        name: Google Cloud Next 2026
        aliases: GCN, Next
        client_name: Google
        budget_hours: 400
    actual_hours:
      p1: 120
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from ..models import Allocation, Person, Project, TimeEntry
from . import BackendWriteError
from .memory import InMemoryBackend

logger = logging.getLogger(__name__)


class LocalBackend(InMemoryBackend):
    """In-memory backend loaded from and saved to the project directory."""

    DATA_DIR = ".zhuzh"
    DIRECTORY_FILE = "directory.yaml"
    ALLOCATIONS_FILE = "allocations.json"
    TIME_ENTRIES_FILE = "time_entries.json"

    def __init__(self, project_path: Path) -> None:
        super().__init__()
        self.project_path = Path(project_path)
        self._yaml = YAML()
        self._yaml.default_flow_style = False
        self._load()

    @property
    def data_dir(self) -> Path:
        return self.project_path / self.DATA_DIR

    @property
    def directory_file(self) -> Path:
        return self.data_dir / self.DIRECTORY_FILE

    @property
    def allocations_file(self) -> Path:
        return self.data_dir / self.ALLOCATIONS_FILE

    @property
    def time_entries_file(self) -> Path:
        return self.data_dir / self.TIME_ENTRIES_FILE

    # =========================================================================
    # Loading
    # =========================================================================

    def _load(self) -> None:
        self._load_directory()

        for data in self._read_json(self.allocations_file):
            allocation = Allocation.model_validate(data)
            key = (allocation.user_id, allocation.project_id, allocation.week_start)
            self.allocations[key] = allocation

        for data in self._read_json(self.time_entries_file):
            entry = TimeEntry.model_validate(data)
            self.time_entries[entry.id] = entry

        logger.debug(
            f"Loaded {len(self.people)} people, {len(self.projects)} projects, "
            f"{len(self.allocations)} allocations from {self.data_dir}"
        )

    def _load_directory(self) -> None:
        if not self.directory_file.exists():
            logger.info(f"No directory file at {self.directory_file}")
            return

        with self.directory_file.open("r") as f:
            data = self._yaml.load(f) or {}

        org_id = data.get("org_id")
        self.org_id = org_id
        for raw in data.get("people") or []:
            person = dict(raw)
            person.setdefault("org_id", org_id)
            self.add_person(Person.model_validate(person))
        for raw in data.get("projects") or []:
            project = dict(raw)
            project.setdefault("org_id", org_id)
            self.add_project(Project.model_validate(project))
        for project_id, hours in (data.get("actual_hours") or {}).items():
            self.record_actual_hours(str(project_id), float(hours))

    def _read_json(self, path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        try:
            with path.open("r") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to load {path}: {e}")
            return []

    # =========================================================================
    # Saving
    # =========================================================================

    def _after_write(self) -> None:
        self._write_json(self.allocations_file, [a.to_dict() for a in self.allocations.values()])
        self._write_json(self.time_entries_file, [e.to_dict() for e in self.time_entries.values()])

    def _write_json(self, path: Path, data: list[dict[str, Any]]) -> None:
        """Atomically replace ``path`` with ``data``."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        temp_file = path.with_suffix(".json.tmp")
        try:
            with temp_file.open("w") as f:
                json.dump(data, f, indent=2)
            temp_file.replace(path)
        except OSError as e:
            if temp_file.exists():
                temp_file.unlink()
            raise BackendWriteError(f"Failed to save {path.name}: {e}") from e

    def save_directory(self) -> None:
        """Write people and projects back to directory.yaml."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        data: dict[str, Any] = {}
        if self.org_id:
            data["org_id"] = self.org_id
        data["people"] = [
            p.model_dump(mode="json", exclude_none=True) for p in self.people.values()
        ]
        data["projects"] = [
            p.model_dump(mode="json", exclude_none=True) for p in self.projects.values()
        ]
        if self.actual_hours:
            data["actual_hours"] = dict(self.actual_hours)
        with self.directory_file.open("w") as f:
            self._yaml.dump(data, f)


__all__ = ["LocalBackend"]
