"""Prerequisite gating for new submissions."""

from typing import List, Mapping, Optional

from .catalog import Stage, StageCatalog
from .states import SubmissionStatus


def unmet_prerequisites(
    case_statuses: Mapping[str, SubmissionStatus],
    stage: Stage,
    catalog: Optional[StageCatalog] = None,
) -> List[str]:
    """Prerequisites of ``stage`` that are not currently approved.

    Missing entries count as not started. Ordered by catalog order when a
    catalog is given, alphabetically otherwise.
    """
    unmet = [
        prerequisite
        for prerequisite in stage.prerequisites
        if case_statuses.get(prerequisite, SubmissionStatus.NOT_STARTED) != SubmissionStatus.APPROVED
    ]
    if catalog is not None:
        position = {stage_id: index for index, stage_id in enumerate(catalog.ids)}
        return sorted(unmet, key=lambda stage_id: position.get(stage_id, len(position)))
    return sorted(unmet)


def can_submit(case_statuses: Mapping[str, SubmissionStatus], stage: Stage) -> bool:
    """Whether a submission to ``stage`` is admissible given the case statuses."""
    return not unmet_prerequisites(case_statuses, stage)
