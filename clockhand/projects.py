"""Watched projects and the mapping from changed paths to projects.

Each project is declared by a small JSON descriptor (conventionally named
``clockhand.json``)::

    {"harvest_project_id": 12345, "name": "Alpha"}

The project root is the directory containing the descriptor. If that directory
is named ``.config``, the root is its parent, so a descriptor can live at
``<project>/.config/clockhand.json`` without the watch root including it.

Resolution Policy:
    Roots may overlap (one nested inside another). A path resolves to the first
    registered project whose root contains it, so registration order decides
    ties.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Iterable, Iterator, List, Optional, Union

from clockhand.errors import ConfigMalformed, ConfigNotFound

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

__all__ = ["Project", "ProjectRegistry", "read_project_config"]

CONFIG_SUBDIR = ".config"

PROJECT_HELP = """didn't find the project config file at {path}

1. Create a file at this path with the following contents:
   {{"harvest_project_id": 12345, "name": "My Project"}}"""


@dataclass(frozen=True)
class Project:
    """A tracked project.

    Attributes:
        id (int): Harvest project id.
        name (str): Human-readable label used in notifications.
        root (Path): Absolute path of the directory subtree the project owns.
    """

    id: int
    name: str
    root: Path

    def contains(self, path: Union[str, PurePath]) -> bool:
        """Return True if ``path`` lies inside this project's root.

        Compares whole path segments, so a root of ``/a/b`` does not contain
        ``/a/bc/file.txt``. Falls back to comparing real paths, since some
        observers (FSEvents) report symlink-resolved locations.
        """
        if _is_within(PurePath(path), self.root):
            return True
        return _is_within(
            PurePath(os.path.realpath(path)), PurePath(os.path.realpath(self.root))
        )


def _is_within(candidate: PurePath, root: PurePath) -> bool:
    return candidate == root or root in candidate.parents


def _project_root(descriptor: Path) -> Path:
    config_dir = descriptor.parent
    if config_dir.name == CONFIG_SUBDIR:
        return config_dir.parent
    return config_dir


def read_project_config(path: Union[str, Path]) -> Project:
    """Read a project descriptor and build a :class:`Project`.

    Args:
        path (Union[str, Path]): Path to the descriptor. ``~`` is expanded and
            relative paths are made absolute (symlinks are not resolved).

    Returns:
        Project: The project described by the file.

    Raises:
        ConfigNotFound: If the descriptor does not exist or cannot be read.
        ConfigMalformed: If the descriptor is not a JSON object with an integer
            ``harvest_project_id`` and a string ``name``.
    """
    descriptor = Path(os.path.expanduser(str(path))).absolute()

    try:
        contents = descriptor.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigNotFound(PROJECT_HELP.format(path=descriptor)) from e

    try:
        data = json.loads(contents)
    except json.JSONDecodeError as e:
        raise ConfigMalformed(f"bad format for {descriptor}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigMalformed(f"bad format for {descriptor}: expected a JSON object")

    project_id = data.get("harvest_project_id")
    name = data.get("name")
    if isinstance(project_id, bool) or not isinstance(project_id, int):
        raise ConfigMalformed(
            f"bad format for {descriptor}: 'harvest_project_id' must be an integer"
        )
    if not isinstance(name, str):
        raise ConfigMalformed(f"bad format for {descriptor}: 'name' must be a string")

    return Project(id=project_id, name=name, root=_project_root(descriptor))


class ProjectRegistry:
    """Ordered, immutable collection of watched projects."""

    def __init__(self, projects: Iterable[Project]) -> None:
        self._projects: List[Project] = list(projects)

    @classmethod
    def load(cls, paths: Iterable[Union[str, Path]]) -> ProjectRegistry:
        """Build a registry from descriptor paths, in the order given.

        Raises:
            ConfigNotFound: If any descriptor is missing.
            ConfigMalformed: If any descriptor cannot be parsed.
        """
        projects = []
        for path in paths:
            project = read_project_config(path)
            logger.debug(f"Loaded project {project.name!r} (id={project.id}) from {path}")
            projects.append(project)
        return cls(projects)

    def resolve(self, path: Union[str, PurePath]) -> Optional[Project]:
        """Return the first registered project containing ``path``, or None."""
        for project in self._projects:
            if project.contains(path):
                return project
        return None

    @property
    def roots(self) -> List[Path]:
        """Distinct project roots, in registration order."""
        seen: List[Path] = []
        for project in self._projects:
            if project.root not in seen:
                seen.append(project.root)
        return seen

    def __iter__(self) -> Iterator[Project]:
        return iter(self._projects)

    def __len__(self) -> int:
        return len(self._projects)

    def __repr__(self) -> str:
        names = ", ".join(p.name for p in self._projects)
        return f"<ProjectRegistry [{names}]>"
