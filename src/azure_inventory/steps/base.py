from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Set, TypeVar

from ..azure.web_linker import AzureWebLinker
from ..graph.job_state import InMemoryJobState
from ..graph.model import Entity, Relationship
from ..graph.resource_ids import ResolutionStatus, resolve_resource_id
from ..util.errors import DuplicateKeyError, InvalidRecordError

T = TypeVar("T")


class StepStatus(str, Enum):
    OK = "OK"
    ERROR = "ERROR"
    SKIPPED = "SKIPPED"


@dataclass
class StepContext:
    """
    Everything a step needs for one run. web_linker starts without a domain and
    is replaced once the account step has read the directory's default domain.
    """

    config: Any
    job_state: InMemoryJobState
    clients: Any = None
    graph: Any = None
    web_linker: AzureWebLinker = field(default_factory=lambda: AzureWebLinker(None))
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("azure_inventory.steps"))
    records_skipped: int = 0
    step_id: Optional[str] = None
    unrecognized_resource_ids: Set[str] = field(default_factory=set)

    def convert(self, step_id: str, fn: Callable[..., T], *args: Any) -> Optional[T]:
        """
        Run one converter call; an invalid record is logged, counted and skipped.
        """
        try:
            return fn(*args)
        except InvalidRecordError as e:
            self.records_skipped += 1
            self.logger.warning(
                "Skipping invalid record",
                extra={"step": step_id, "phase": "convert", "error": str(e)},
            )
            return None

    def _skip_duplicate(self, error: DuplicateKeyError) -> None:
        self.records_skipped += 1
        self.logger.warning(
            "Skipping duplicate record",
            extra={"step": self.step_id, "phase": "publish", "error": str(error)},
        )

    def _track_endpoints(self, relationship: Relationship) -> None:
        for name in ("_fromEntityKey", "_toEntityKey"):
            key = relationship.get(name)
            if not isinstance(key, str) or not key.startswith("/") or key in self.unrecognized_resource_ids:
                continue
            if resolve_resource_id(self.job_state, key).status is ResolutionStatus.UNRECOGNIZED:
                self.unrecognized_resource_ids.add(key)
                self.logger.debug("Unrecognized resource id", extra={"step": self.step_id, "resource_id": key})

    def add_entity(self, entity: Entity) -> Optional[Entity]:
        """Publish an entity; a repeated _key is logged, counted and returns None."""
        try:
            return self.job_state.add_entity(entity)
        except DuplicateKeyError as e:
            self._skip_duplicate(e)
            return None

    def add_relationship(self, relationship: Optional[Relationship]) -> None:
        if relationship is None:
            return
        try:
            self.job_state.add_relationship(relationship)
        except DuplicateKeyError as e:
            self._skip_duplicate(e)
            return
        self._track_endpoints(relationship)

    def add_relationship_once(self, relationship: Optional[Relationship]) -> None:
        """Add unless a relationship with the same _key was already published."""
        if relationship is not None and not self.job_state.has_key(relationship["_key"]):
            self.job_state.add_relationship(relationship)
            self._track_endpoints(relationship)


StepExecute = Callable[[StepContext], None]


@dataclass(frozen=True)
class Step:
    id: str
    name: str
    entities: List[str]
    relationships: List[str]
    depends_on: List[str]
    execute: StepExecute
    # Directory steps honor ingest_active_directory
    active_directory: bool = False


@dataclass(frozen=True)
class StepResult:
    id: str
    status: StepStatus
    error: Optional[str]
    duration_ms: int
    entities_added: int
    relationships_added: int
    records_skipped: int
