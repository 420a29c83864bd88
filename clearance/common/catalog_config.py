"""Stage catalog configuration.

Handles loading and validation of YAML stage catalog files. A file names a
gating shape and lists the stages:

    gating: fan_out          # explicit | chain | fan_out | flat
    gate_stage: department_hod
    stages:
      - id: department_hod
        name: Head of Department (HOD)
        order: 1
        scope_required: true
        aliases: [hod, department]
      - id: bursary
        name: Bursary
        order: 5
        prerequisites: []

Explicit per-stage prerequisites are combined with the ones implied by the
gating shape, except for ``flat`` which removes all gating.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from clearance.core.workflow.catalog import CatalogError, Stage, StageCatalog

GATING_SHAPES = ("explicit", "chain", "fan_out", "flat")

# University clearance offices, HOD first and scoped to the person's department
DEFAULT_STAGES: List[Dict[str, Any]] = [
    {"id": "department_hod", "name": "Head of Department (HOD)", "order": 1,
     "aliases": ["hod", "department"], "scope_required": True},
    {"id": "faculty_officer", "name": "Faculty Officer", "order": 2,
     "aliases": ["faculty"]},
    {"id": "university_librarian", "name": "University Librarian", "order": 3,
     "aliases": ["library", "librarian"]},
    {"id": "exams_transcript", "name": "Exams and Transcript Office", "order": 4,
     "aliases": ["exams", "transcript"]},
    {"id": "bursary", "name": "Bursary", "order": 5,
     "aliases": ["bursar"]},
    {"id": "sports_council", "name": "Sports Council", "order": 6,
     "aliases": ["sports"]},
    {"id": "alumni_association", "name": "Alumni Association", "order": 7,
     "aliases": ["alumni"]},
    {"id": "internal_audit", "name": "Internal Audit", "order": 8,
     "aliases": ["audit"]},
    {"id": "student_affairs", "name": "Student Affairs", "order": 9,
     "aliases": ["student-affairs"]},
    {"id": "security_office", "name": "Security Office", "order": 10,
     "aliases": ["security"]},
]

DEFAULT_CATALOG_CONFIG: Dict[str, Any] = {
    "gating": "fan_out",
    "gate_stage": "department_hod",
    "stages": DEFAULT_STAGES,
}


def _string_list(stage_dict: Dict[str, Any], key: str, stage_id: str) -> List[str]:
    """Read a list of ids, accepting a single id written as a scalar."""
    value = stage_dict.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, (list, tuple)):
        raise CatalogError(f"Stage {stage_id}: {key} must be a list of stage ids")
    return [str(item).strip() for item in value if str(item).strip()]


def parse_stage_config(stage_dict: Dict[str, Any], position: int = 0) -> Stage:
    """Parse a stage configuration dictionary.

    Args:
        stage_dict: Stage configuration dictionary
        position: Index in the stage list, used when ``order`` is omitted

    Returns:
        Stage instance

    Raises:
        CatalogError: If the stage has no id
    """
    if not isinstance(stage_dict, dict):
        raise CatalogError(f"Stage entry {position + 1} must be a mapping")

    stage_id = str(stage_dict.get("id") or "").strip()
    if not stage_id:
        raise CatalogError(f"Stage entry {position + 1} has no id")

    return Stage(
        id=stage_id,
        display_name=stage_dict.get("name") or stage_id.replace("_", " ").title(),
        order=int(stage_dict.get("order", position + 1)),
        prerequisites=frozenset(_string_list(stage_dict, "prerequisites", stage_id)),
        scope_required=bool(stage_dict.get("scope_required", False)),
        aliases=tuple(_string_list(stage_dict, "aliases", stage_id)),
        description=stage_dict.get("description"),
    )


def parse_catalog_config(config_dict: Dict[str, Any]) -> StageCatalog:
    """Parse the full catalog configuration dictionary.

    Args:
        config_dict: Catalog configuration dictionary

    Returns:
        StageCatalog instance

    Raises:
        CatalogError: If the gating shape is unknown or the stages are inconsistent
    """
    gating = str(config_dict.get("gating", "explicit")).strip().lower()
    if gating not in GATING_SHAPES:
        raise CatalogError(
            f"Unknown gating shape {gating!r}, expected one of {', '.join(GATING_SHAPES)}"
        )

    stages = [
        parse_stage_config(stage_dict, position)
        for position, stage_dict in enumerate(config_dict.get("stages") or [])
    ]

    if gating == "chain":
        return StageCatalog.chain(stages)
    if gating == "fan_out":
        return StageCatalog.fan_out(stages, gate=config_dict.get("gate_stage"))
    if gating == "flat":
        return StageCatalog.flat(stages)
    return StageCatalog(stages)


def load_config(config_path: str) -> Dict[str, Any]:
    """Load catalog configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Stage catalog file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Stage catalog root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration."""
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def default_catalog() -> StageCatalog:
    """The built-in ten-office university clearance."""
    return parse_catalog_config(DEFAULT_CATALOG_CONFIG)


def load_catalog(config_path: Optional[str] = None) -> StageCatalog:
    """Load a stage catalog from YAML, or the built-in catalog when no path is given."""
    if not config_path:
        return default_catalog()
    return parse_catalog_config(load_config(config_path))
