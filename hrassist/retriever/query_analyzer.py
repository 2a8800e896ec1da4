"""
Query Analyzer

Turns a free-text HR question into a QueryAnalysis: detected entities,
ranked intents, the assistant type that should answer, an overall
confidence and whether record data is needed.

Entity detection matches against name indexes built once at startup and a
fixed set of regex patterns. Intent scoring is the declarative table in
``intent_rules``.
"""

import asyncio
import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ..common.config import AnalyzerConfig
from ..common.errors import AnalysisDegraded, HRAssistError
from ..common.schemas.conversation import AssistantType
from .analysis import (
    DetectedEntity,
    DetectedIntent,
    EntityType,
    EMPLOYEE_INTENTS,
    QueryAnalysis,
    TALENT_INTENTS,
)
from .intent_rules import INTENT_RULES, IntentRule, general_question

logger = logging.getLogger("hrassist.retriever.query_analyzer")

MAX_CONFIDENCE = 0.95
ENTITY_CONFIDENCE_STEP = 0.05
ENTITY_CONFIDENCE_CAP = 0.2
SECONDARY_DATA_THRESHOLD = 0.4
SECONDARY_WEIGHT = 0.5


class QueryAnalyzer:
    """
    Deterministic query analysis.

    Responsibilities:
    1. Build name indexes (employees, candidates, job titles, departments)
    2. Detect and score entities, then deduplicate them
    3. Score intents from the rule table and rank them
    4. Resolve which assistant (employee, talent, unified) should answer

    If the indexes cannot be built the analyzer keeps working from regex
    patterns alone and marks its results as degraded.
    """

    ID_PATTERNS = {
        EntityType.EMPLOYEE: re.compile(r"\b(e\d{3})\b", re.IGNORECASE),
        EntityType.CANDIDATE: re.compile(r"\b(c\d{3})\b", re.IGNORECASE),
        EntityType.JOB: re.compile(r"\b(j\d{3})\b", re.IGNORECASE),
    }

    JOB_TITLE_PATTERNS = [
        re.compile(
            r"\b(senior|junior|lead|principal|chief)?\s*"
            r"(software|frontend|backend|fullstack|web|mobile|data|cloud|devops|qa|test|security)\s*"
            r"(engineer|developer|architect|analyst|specialist|manager)\b"
        ),
        re.compile(
            r"\b(marketing|sales|hr|finance|product|project|program)\s*"
            r"(director|manager|specialist|coordinator|assistant)\b"
        ),
        re.compile(r"\b(ux|ui)\s*(designer|researcher)\b"),
    ]

    SENIORITY_PREFIX = re.compile(r"^(junior|senior|lead|principal|chief)\s+", re.IGNORECASE)

    ISO_DATE_PATTERN = re.compile(r"\b(\d{4}-\d{2}-\d{2})\b")
    DATE_RANGE_PATTERN = re.compile(r"\b(\d{4}-\d{2}-\d{2})\s+to\s+(\d{4}-\d{2}-\d{2})\b")

    TIME_PERIOD_PATTERNS = [
        (re.compile(r"\bnext week\b"), "next_week"),
        (re.compile(r"\bthis week\b"), "this_week"),
        (re.compile(r"\blast week\b"), "last_week"),
        (re.compile(r"\bnext month\b"), "next_month"),
        (re.compile(r"\bthis month\b"), "this_month"),
        (re.compile(r"\blast month\b"), "last_month"),
        (re.compile(r"\btoday\b"), "today"),
        (re.compile(r"\btomorrow\b"), "tomorrow"),
        (re.compile(r"\byesterday\b"), "yesterday"),
        (re.compile(r"\bq[1-4]\b"), "quarter"),
    ]

    KNOWN_LOCATIONS = [
        "new york", "san francisco", "chicago", "boston", "los angeles",
        "seattle", "austin", "denver", "miami", "atlanta", "remote", "hybrid",
    ]

    WORK_MODE_PATTERNS = [
        (re.compile(r"\bin\s*office\b"), "in_office"),
        (re.compile(r"\bremote\b"), "remote"),
        (re.compile(r"\bhybrid\b"), "hybrid"),
        (re.compile(r"\bin\s*person\b"), "in_office"),
        (re.compile(r"\bwfh\b"), "remote"),
    ]

    def __init__(
        self,
        record_service=None,
        config: Optional[AnalyzerConfig] = None,
        rules: Sequence[IntentRule] = INTENT_RULES,
    ):
        """
        Initialize analyzer.

        Args:
            record_service: CachedRecordService used to build name indexes
            config: Assistant resolution thresholds
            rules: Intent scoring table
        """
        self._service = record_service
        self._config = config or AnalyzerConfig()
        self._rules = tuple(rules)

        self._employee_names: Dict[str, str] = {}
        self._employee_display: Dict[str, str] = {}
        self._candidate_names: Dict[str, str] = {}
        self._candidate_display: Dict[str, str] = {}
        self._job_titles: Dict[str, str] = {}
        self._job_display: Dict[str, str] = {}
        self._departments: Dict[str, str] = {}

        self._initialized = False
        self.degradation: Optional[AnalysisDegraded] = None

    @property
    def is_degraded(self) -> bool:
        return self.degradation is not None

    @property
    def initialized(self) -> bool:
        return self._initialized

    # ------------------------------------------------------------------
    # Index construction
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """
        Build name indexes from the record service.

        Collections that fail to load are skipped; the analyzer is then
        degraded but still usable.

        Returns:
            True if every index was built
        """
        if self._service is None:
            self._degrade("no record service configured")
            return False

        results = await asyncio.gather(
            self._service.get_employees(),
            self._service.get_candidates(),
            self._service.get_jobs(),
            return_exceptions=True,
        )
        loaded = []
        failed = []
        for name, result in zip(("employees", "candidates", "jobs"), results):
            if isinstance(result, HRAssistError):
                failed.append(f"{name}: {result.message}")
                loaded.append([])
            elif isinstance(result, BaseException):
                raise result
            else:
                loaded.append(result)

        self.index_records(*loaded)
        if failed:
            self._degrade("; ".join(failed))
            return False

        self.degradation = None
        logger.info(
            "Indexed %d employee names, %d candidate names, %d job titles",
            len(self._employee_names), len(self._candidate_names), len(self._job_titles),
        )
        return True

    def index_records(self, employees: Iterable, candidates: Iterable, jobs: Iterable) -> None:
        """Rebuild the name indexes from records"""
        self._employee_names.clear()
        self._employee_display.clear()
        self._candidate_names.clear()
        self._candidate_display.clear()
        self._job_titles.clear()
        self._job_display.clear()
        self._departments.clear()

        for employee in employees:
            self._employee_display[employee.id] = employee.full_name
            for name in (employee.full_name, employee.first_name, employee.last_name):
                if name.strip():
                    self._employee_names[name.lower()] = employee.id
            if employee.department:
                self._departments[employee.department.lower()] = employee.department

        for candidate in candidates:
            self._candidate_display[candidate.id] = candidate.full_name
            for name in (candidate.full_name, candidate.first_name, candidate.last_name):
                if name.strip():
                    self._candidate_names[name.lower()] = candidate.id

        for job in jobs:
            self._job_display[job.id] = job.title
            title = job.title.lower()
            if title:
                self._job_titles[title] = job.id
                stripped = self.SENIORITY_PREFIX.sub("", title)
                if stripped and stripped != title:
                    self._job_titles[stripped] = job.id

        self._initialized = True

    def _degrade(self, reason: str) -> None:
        self.degradation = AnalysisDegraded(f"Query analysis running without name indexes ({reason})")
        logger.warning("%s", self.degradation.message)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze(self, query: str) -> QueryAnalysis:
        """
        Analyze one query.

        Args:
            query: Raw user text

        Returns:
            Immutable QueryAnalysis
        """
        text = query.lower()
        entities = self.detect_entities(text)
        intents = self.detect_intents(text, entities)
        primary, secondary = intents[0], tuple(intents[1:])

        entity_boost = min(ENTITY_CONFIDENCE_CAP, ENTITY_CONFIDENCE_STEP * len(entities))
        confidence = min(MAX_CONFIDENCE, primary.confidence + entity_boost)

        requires_data = (
            primary.requires_data
            or bool(entities)
            or any(i.requires_data and i.confidence > SECONDARY_DATA_THRESHOLD for i in secondary)
        )

        analysis = QueryAnalysis(
            query=query,
            entities=tuple(entities),
            primary_intent=primary,
            secondary_intents=secondary,
            assistant_type=self.resolve_assistant_type(primary, secondary),
            confidence_score=confidence,
            requires_data=requires_data,
            degraded=self.is_degraded,
        )
        logger.debug(
            "Analyzed query: intent=%s (%.2f) entities=%d assistant=%s",
            primary.category.value, primary.confidence, len(entities), analysis.assistant_type.value,
        )
        return analysis

    def detect_entities(self, text: str) -> List[DetectedEntity]:
        """Detect, score and deduplicate entities in lower-cased text"""
        entities: List[DetectedEntity] = []
        entities.extend(self._match_names(text, EntityType.EMPLOYEE, self._employee_names, self._employee_display))
        entities.extend(self._match_names(text, EntityType.CANDIDATE, self._candidate_names, self._candidate_display))
        entities.extend(self._match_names(text, EntityType.JOB, self._job_titles, self._job_display))

        for name, department in self._departments.items():
            if name in text:
                entities.append(DetectedEntity(
                    entity_type=EntityType.DEPARTMENT,
                    value=department,
                    original_text=name,
                    confidence=self.entity_confidence(name, text),
                ))

        entities.extend(self._match_ids(text))
        entities.extend(self._match_job_patterns(text, entities))
        entities.extend(self._match_dates(text))
        entities.extend(self._match_locations(text))
        return self.deduplicate(entities)

    def _match_names(
        self,
        text: str,
        entity_type: EntityType,
        index: Dict[str, str],
        display: Dict[str, str],
    ) -> List[DetectedEntity]:
        found = []
        for name, record_id in index.items():
            if name in text:
                found.append(DetectedEntity(
                    entity_type=entity_type,
                    value=display.get(record_id, name),
                    original_text=name,
                    confidence=self.entity_confidence(name, text),
                    record_id=record_id,
                ))
        return found

    def _match_ids(self, text: str) -> List[DetectedEntity]:
        displays = {
            EntityType.EMPLOYEE: self._employee_display,
            EntityType.CANDIDATE: self._candidate_display,
            EntityType.JOB: self._job_display,
        }
        found = []
        for entity_type, pattern in self.ID_PATTERNS.items():
            display = displays[entity_type]
            for match in pattern.finditer(text):
                record_id = match.group(1).upper()
                if record_id in display:
                    value = display[record_id]
                elif self.is_degraded or not display:
                    value = record_id
                else:
                    continue
                found.append(DetectedEntity(
                    entity_type=entity_type,
                    value=value,
                    original_text=match.group(0),
                    confidence=MAX_CONFIDENCE,
                    record_id=record_id,
                ))
        return found

    def _match_job_patterns(self, text: str, existing: List[DetectedEntity]) -> List[DetectedEntity]:
        seen = {e.original_text for e in existing}
        found = []
        for pattern in self.JOB_TITLE_PATTERNS:
            for match in pattern.finditer(text):
                matched = match.group(0).strip()
                if not matched or matched in seen:
                    continue
                seen.add(matched)
                found.append(DetectedEntity(
                    entity_type=EntityType.JOB,
                    value=matched,
                    original_text=matched,
                    confidence=0.7,
                ))
        return found

    def _match_dates(self, text: str) -> List[DetectedEntity]:
        found = []
        for match in self.ISO_DATE_PATTERN.finditer(text):
            found.append(DetectedEntity(
                entity_type=EntityType.DATE,
                value=match.group(1),
                original_text=match.group(0),
                confidence=0.95,
            ))

        for match in self.DATE_RANGE_PATTERN.finditer(text):
            start, end = match.group(1), match.group(2)
            found.append(DetectedEntity(
                entity_type=EntityType.TIME_PERIOD,
                value=f"{start} to {end}",
                original_text=match.group(0),
                confidence=0.9,
                metadata={"start_date": start, "end_date": end},
            ))

        for pattern, period in self.TIME_PERIOD_PATTERNS:
            match = pattern.search(text)
            if match:
                found.append(DetectedEntity(
                    entity_type=EntityType.TIME_PERIOD,
                    value=period,
                    original_text=match.group(0),
                    confidence=0.85,
                ))
        return found

    def _match_locations(self, text: str) -> List[DetectedEntity]:
        found = []
        for location in self.KNOWN_LOCATIONS:
            if location in text:
                found.append(DetectedEntity(
                    entity_type=EntityType.LOCATION,
                    value=location,
                    original_text=location,
                    confidence=self.entity_confidence(location, text),
                ))
        for pattern, mode in self.WORK_MODE_PATTERNS:
            match = pattern.search(text)
            if match:
                found.append(DetectedEntity(
                    entity_type=EntityType.LOCATION,
                    value=mode,
                    original_text=match.group(0),
                    confidence=0.8,
                ))
        return found

    @staticmethod
    def entity_confidence(matched: str, text: str) -> float:
        """0.9 surrounded by spaces, 0.8 at the start or end, else 0.7"""
        if f" {matched} " in text:
            return 0.9
        if text.startswith(matched) or text.endswith(matched):
            return 0.8
        return 0.7

    @staticmethod
    def deduplicate(entities: Iterable[DetectedEntity]) -> List[DetectedEntity]:
        """Keep the highest-confidence entity per (type, value or original text)"""
        kept: List[DetectedEntity] = []
        for entity in sorted(entities, key=lambda e: e.confidence, reverse=True):
            duplicate = any(
                k.entity_type == entity.entity_type
                and (k.value == entity.value or k.original_text == entity.original_text)
                for k in kept
            )
            if not duplicate:
                kept.append(entity)
        return kept

    def detect_intents(self, text: str, entities: Sequence[DetectedEntity]) -> List[DetectedIntent]:
        """
        Score every rule and rank the emitted intents.

        Returns:
            Intents sorted by confidence descending; never empty
        """
        present: Set[EntityType] = {e.entity_type for e in entities}
        intents = []
        for rule in self._rules:
            intent = rule.evaluate(text, present)
            if intent is not None:
                intents.append(intent)
        intents.append(general_question())
        return sorted(intents, key=lambda i: i.confidence, reverse=True)

    def resolve_assistant_type(
        self,
        primary: DetectedIntent,
        secondary: Tuple[DetectedIntent, ...] = (),
    ) -> AssistantType:
        """Pick the domain assistant, falling back to unified when neither leads clearly"""
        if primary.confidence > self._config.assistant_switch_threshold:
            if primary.category in EMPLOYEE_INTENTS:
                return AssistantType.EMPLOYEE
            if primary.category in TALENT_INTENTS:
                return AssistantType.TALENT

        employee_score = 0.0
        talent_score = 0.0
        weighted = [(primary, 1.0)] + [(intent, SECONDARY_WEIGHT) for intent in secondary]
        for intent, weight in weighted:
            if intent.category in EMPLOYEE_INTENTS:
                employee_score += intent.confidence * weight
            elif intent.category in TALENT_INTENTS:
                talent_score += intent.confidence * weight

        margin = self._config.domain_margin
        if employee_score > talent_score + margin:
            return AssistantType.EMPLOYEE
        if talent_score > employee_score + margin:
            return AssistantType.TALENT
        return AssistantType.UNIFIED


