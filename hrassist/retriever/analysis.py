"""
Query Analysis Types

Entities, intents and the immutable analysis produced once per query.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..common.schemas.conversation import AssistantType


class EntityType(str, Enum):
    """Kinds of structured mentions detected in a query"""
    EMPLOYEE = "employee"
    CANDIDATE = "candidate"
    JOB = "job"
    DEPARTMENT = "department"
    DATE = "date"
    TIME_PERIOD = "time_period"
    LOCATION = "location"
    SKILL = "skill"
    TASK = "task"


class IntentCategory(str, Enum):
    """Classified purpose of a query"""
    EMPLOYEE_INFO = "employee_info"
    SCHEDULE_MANAGEMENT = "schedule_management"
    TASK_MANAGEMENT = "task_management"
    RECOGNITION = "recognition"
    JOB_MANAGEMENT = "job_management"
    CANDIDATE_MANAGEMENT = "candidate_management"
    INTERVIEW_PROCESS = "interview_process"
    HIRING_WORKFLOW = "hiring_workflow"
    GENERAL_QUESTION = "general_question"


EMPLOYEE_INTENTS = frozenset({
    IntentCategory.EMPLOYEE_INFO,
    IntentCategory.SCHEDULE_MANAGEMENT,
    IntentCategory.TASK_MANAGEMENT,
    IntentCategory.RECOGNITION,
})

TALENT_INTENTS = frozenset({
    IntentCategory.JOB_MANAGEMENT,
    IntentCategory.CANDIDATE_MANAGEMENT,
    IntentCategory.INTERVIEW_PROCESS,
    IntentCategory.HIRING_WORKFLOW,
})


@dataclass(frozen=True)
class DetectedEntity:
    """A structured mention extracted from the query text"""
    entity_type: EntityType
    value: str
    original_text: str
    confidence: float
    record_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class DetectedIntent:
    """A scored purpose of the query"""
    category: IntentCategory
    confidence: float
    sub_intents: Tuple[str, ...] = ()
    requires_data: bool = True

    def has_sub_intent(self, name: str) -> bool:
        return name in self.sub_intents


@dataclass(frozen=True)
class QueryAnalysis:
    """Entities, ranked intents and routing decision for one query"""
    query: str
    entities: Tuple[DetectedEntity, ...]
    primary_intent: DetectedIntent
    secondary_intents: Tuple[DetectedIntent, ...]
    assistant_type: AssistantType
    confidence_score: float
    requires_data: bool
    degraded: bool = False

    @property
    def intents(self) -> List[DetectedIntent]:
        return [self.primary_intent, *self.secondary_intents]

    def entities_of(self, entity_type: EntityType) -> List[DetectedEntity]:
        return [e for e in self.entities if e.entity_type == entity_type]

    def has_entity(self, entity_type: EntityType) -> bool:
        return any(e.entity_type == entity_type for e in self.entities)
