"""Preset loader - YAML serialization for named report runs.

A presets file maps a preset name to a project identifier and its run
options, so recurring projects can be version-controlled and re-run::

    projects:
      superdairy:
        project_id: mlab_superdairy_usa_2
        options:
          is_final: true
          has_findability: true
"""

from pathlib import Path

import yaml

from ..errors import ConfigurationError
from .config import ReportConfiguration, normalize_options


def save_presets(presets: dict[str, dict], path: str | Path) -> None:
    """Serialize ``{name: {"project_id": ..., "options": {...}}}`` to YAML."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {"projects": presets}
    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False,
                  allow_unicode=True, width=120)


def load_presets(path: str | Path) -> dict[str, dict]:
    """Deserialize presets, validating every options block."""
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    projects = data.get("projects")
    if not isinstance(projects, dict):
        raise ConfigurationError(f"{path}: expected a top-level 'projects' mapping")

    presets = {}
    for name, entry in projects.items():
        if not isinstance(entry, dict) or not entry.get("project_id"):
            raise ConfigurationError(f"{path}: preset {name!r} has no project_id")
        presets[name] = {
            "project_id": str(entry["project_id"]),
            "options": normalize_options(entry.get("options") or {}),
        }
    return presets


def configuration_from_preset(presets: dict[str, dict], name: str) -> ReportConfiguration:
    """Build a ReportConfiguration from a loaded preset."""
    if name not in presets:
        available = ", ".join(sorted(presets)) or "none"
        raise ConfigurationError(f"Unknown preset {name!r}. Available: {available}")
    entry = presets[name]
    return ReportConfiguration.from_options(entry["project_id"], entry["options"])
