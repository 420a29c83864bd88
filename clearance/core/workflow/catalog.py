"""Stage catalog: the ordered, immutable list of clearance stages.

Gating is expressed per stage as a prerequisite set, which covers a strict
chain, a single fan-out gate, an ungated tracker and any mixed DAG.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from .errors import NotFoundError


class CatalogError(ValueError):
    """Raised when a stage catalog definition is inconsistent."""


@dataclass(frozen=True)
class Stage:
    """Static definition of one clearance stage."""

    id: str
    display_name: str
    order: int
    prerequisites: FrozenSet[str] = field(default_factory=frozenset)
    scope_required: bool = False
    aliases: Tuple[str, ...] = ()
    description: Optional[str] = None


class StageCatalog:
    """Ordered collection of stages with id and alias lookup."""

    def __init__(self, stages: Iterable[Stage]):
        ordered = sorted(stages, key=lambda s: (s.order, s.id))
        if not ordered:
            raise CatalogError("A stage catalog needs at least one stage")

        self._stages: Tuple[Stage, ...] = tuple(ordered)
        self._by_id: Dict[str, Stage] = {}
        self._lookup: Dict[str, Stage] = {}

        for stage in self._stages:
            key = stage.id.lower()
            if key in self._lookup:
                raise CatalogError(f"Duplicate stage id or alias: {stage.id}")
            self._by_id[stage.id] = stage
            self._lookup[key] = stage

        for stage in self._stages:
            for alias in stage.aliases:
                key = alias.lower()
                existing = self._lookup.get(key)
                if existing is not None and existing.id != stage.id:
                    raise CatalogError(
                        f"Alias {alias!r} of {stage.id} is already used by {existing.id}"
                    )
                self._lookup[key] = stage

        self._validate_prerequisites()

    # Builders for the common gating shapes

    @classmethod
    def chain(cls, stages: Iterable[Stage]) -> "StageCatalog":
        """Each stage requires the stage immediately before it."""
        ordered = sorted(stages, key=lambda s: (s.order, s.id))
        chained = []
        previous: Optional[Stage] = None
        for stage in ordered:
            if previous is not None:
                stage = replace(stage, prerequisites=stage.prerequisites | {previous.id})
            chained.append(stage)
            previous = stage
        return cls(chained)

    @classmethod
    def fan_out(cls, stages: Iterable[Stage], gate: Optional[str] = None) -> "StageCatalog":
        """Every stage except the gate requires the gate stage.

        The gate defaults to the first stage in display order.
        """
        ordered = sorted(stages, key=lambda s: (s.order, s.id))
        if not ordered:
            raise CatalogError("A stage catalog needs at least one stage")
        gate_id = gate or ordered[0].id
        if gate_id not in {s.id for s in ordered}:
            raise CatalogError(f"Gate stage {gate_id} is not in the catalog")
        return cls(
            stage if stage.id == gate_id
            else replace(stage, prerequisites=stage.prerequisites | {gate_id})
            for stage in ordered
        )

    @classmethod
    def flat(cls, stages: Iterable[Stage]) -> "StageCatalog":
        """No stage gates any other."""
        return cls(replace(stage, prerequisites=frozenset()) for stage in stages)

    # Lookup

    def stages(self) -> List[Stage]:
        return list(self._stages)

    @property
    def ids(self) -> List[str]:
        return [stage.id for stage in self._stages]

    def get(self, stage_id: str) -> Optional[Stage]:
        """Find a stage by id or alias (case-insensitive)."""
        if not stage_id:
            return None
        return self._lookup.get(stage_id.strip().lower())

    def by_id(self, stage_id: str) -> Stage:
        stage = self.get(stage_id)
        if stage is None:
            raise NotFoundError(f"Unknown stage: {stage_id}", stage_id=stage_id)
        return stage

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self) -> Iterator[Stage]:
        return iter(self._stages)

    def __contains__(self, stage_id: object) -> bool:
        return isinstance(stage_id, str) and self.get(stage_id) is not None

    def _validate_prerequisites(self) -> None:
        for stage in self._stages:
            for prerequisite in stage.prerequisites:
                if prerequisite == stage.id:
                    raise CatalogError(f"Stage {stage.id} cannot require itself")
                if prerequisite not in self._by_id:
                    raise CatalogError(
                        f"Stage {stage.id} requires unknown stage {prerequisite}"
                    )

        # Depth-first search for cycles: 1 = visiting, 2 = done
        marks: Dict[str, int] = {}

        def visit(stage_id: str, path: List[str]) -> None:
            mark = marks.get(stage_id)
            if mark == 2:
                return
            if mark == 1:
                cycle = path[path.index(stage_id):] + [stage_id]
                raise CatalogError(f"Prerequisite cycle: {' -> '.join(cycle)}")
            marks[stage_id] = 1
            for prerequisite in sorted(self._by_id[stage_id].prerequisites):
                visit(prerequisite, path + [stage_id])
            marks[stage_id] = 2

        for stage in self._stages:
            visit(stage.id, [])
