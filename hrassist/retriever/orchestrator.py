"""
Retrieval Orchestrator

Maps a QueryAnalysis to the set of records worth putting in front of the
model. Entity lookups run in parallel first, intent-driven expansion runs
on what they found, contextual defaults fill in when nothing specific was
named, and a final pass indexes relationships between the records already
retrieved.
"""

import asyncio
import calendar
import copy
import logging
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..common.config import RetrievalConfig
from ..common.schemas.records import Candidate, Employee, Job, Recognition, Shift, Task
from ..data.cache import TieredCache
from ..data.record_service import CacheCategory, CachedRecordService, query_key
from .analysis import DetectedEntity, EntityType, IntentCategory, QueryAnalysis
from .query_analyzer import QueryAnalyzer

logger = logging.getLogger("hrassist.retriever.orchestrator")

PROCESSING_WINDOW = 100

CANDIDATE_INTENTS = frozenset({
    IntentCategory.CANDIDATE_MANAGEMENT,
    IntentCategory.INTERVIEW_PROCESS,
    IntentCategory.HIRING_WORKFLOW,
})


@dataclass
class RelatedData:
    """Relationships among records that were already retrieved"""
    managers: Dict[str, Employee] = field(default_factory=dict)  # employee id -> manager
    direct_reports: Dict[str, List[Employee]] = field(default_factory=dict)
    employee_shifts: Dict[str, List[Shift]] = field(default_factory=dict)
    employee_tasks: Dict[str, List[Task]] = field(default_factory=dict)
    job_candidates: Dict[str, List[Candidate]] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (
            self.managers or self.direct_reports or self.employee_shifts
            or self.employee_tasks or self.job_candidates
        )


@dataclass
class RetrievedData:
    """
    Records gathered for one query.

    Each list holds a record at most once; ``add`` ignores records whose
    identity is already present.
    """
    employees: List[Employee] = field(default_factory=list)
    shifts: List[Shift] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    jobs: List[Job] = field(default_factory=list)
    candidates: List[Candidate] = field(default_factory=list)
    recognitions: List[Recognition] = field(default_factory=list)
    related: RelatedData = field(default_factory=RelatedData)

    FIELDS = {
        "employee": "employees",
        "shift": "shifts",
        "task": "tasks",
        "job": "jobs",
        "candidate": "candidates",
        "recognition": "recognitions",
    }

    @staticmethod
    def identity(record: Any) -> str:
        if record.kind == "task":
            return f"{record.task_kind.value}:{record.id}"
        return record.id

    def contains(self, record: Any) -> bool:
        key = self.identity(record)
        return any(self.identity(r) == key for r in getattr(self, self.FIELDS[record.kind]))

    def add(self, records: Iterable[Any]) -> int:
        """
        Add records, dispatching on their ``kind`` tag.

        Returns:
            Number of records that were new
        """
        added = 0
        for record in records:
            if record is None or self.contains(record):
                continue
            getattr(self, self.FIELDS[record.kind]).append(record)
            added += 1
        return added

    def counts(self) -> Dict[str, int]:
        return {name: len(getattr(self, name)) for name in self.FIELDS.values()}

    def is_empty(self) -> bool:
        return not any(self.counts().values())

    def has_people_or_jobs(self) -> bool:
        return bool(self.employees or self.candidates or self.jobs)


@dataclass
class RetrievalMetrics:
    """Orchestrator counters"""
    queries_processed: int
    cache_hits: int
    cache_misses: int
    entity_counts: Dict[str, int]
    intent_counts: Dict[str, int]
    average_processing_ms: float


class RetrievalOrchestrator:
    """
    Fetches records for an analyzed query.

    Phases:
    1. Entity lookups, one branch per entity, in parallel
    2. Intent expansion over the records found in phase 1
    3. Contextual defaults when no employee, candidate or job was found
    4. Relationship indexing without further fetches

    A failing branch is logged and skipped; its siblings still complete.
    """

    def __init__(
        self,
        record_service: CachedRecordService,
        analyzer: Optional[QueryAnalyzer] = None,
        cache: Optional[TieredCache] = None,
        config: Optional[RetrievalConfig] = None,
        today: Callable[[], date] = date.today,
    ):
        """
        Initialize orchestrator.

        Args:
            record_service: Record access
            analyzer: Used by retrieve_for_query
            cache: Cache for whole retrieval results (defaults to the service's)
            config: Limits and TTLs
            today: Clock used for relative date ranges
        """
        self._service = record_service
        self._analyzer = analyzer
        self._cache = cache if cache is not None else record_service.cache
        self._config = config or RetrievalConfig()
        self._today = today

        self._queries_processed = 0
        self._cache_hits = 0
        self._cache_misses = 0
        self._entity_counts: Counter = Counter()
        self._intent_counts: Counter = Counter()
        self._processing_ms = deque(maxlen=PROCESSING_WINDOW)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def retrieve(self, analysis: QueryAnalysis) -> RetrievedData:
        """
        Gather records for an analysis.

        Args:
            analysis: Output of QueryAnalyzer.analyze

        Returns:
            RetrievedData with relationships indexed
        """
        data = RetrievedData()
        await self._retrieve_entities(analysis, data)
        await self._expand_by_intent(analysis, data)
        if not data.has_people_or_jobs():
            await self._contextual_defaults(analysis, data)
        self._index_relationships(data)

        logger.debug("Retrieved %s", data.counts())
        return data

    async def retrieve_for_query(self, query: str) -> Tuple[QueryAnalysis, RetrievedData]:
        """
        Analyze a query and retrieve its data, memoizing the result.

        Queries that need no data skip retrieval and return empty data.
        Each call returns its own copy; the cached entry is never handed out.
        """
        if self._analyzer is None:
            raise RuntimeError("retrieve_for_query requires a QueryAnalyzer")

        started = time.perf_counter()
        analysis = self._analyzer.analyze(query)
        self._queries_processed += 1
        self._intent_counts[analysis.primary_intent.category.value] += 1
        for entity in analysis.entities:
            self._entity_counts[entity.entity_type.value] += 1

        if not analysis.requires_data:
            self._processing_ms.append((time.perf_counter() - started) * 1000.0)
            return analysis, RetrievedData()

        key = query_key("retrieval", query=query.strip().lower())
        cached = self._cache.get(key, CacheCategory.QUERY)
        if cached is not None:
            self._cache_hits += 1
            data = copy.deepcopy(cached)
        else:
            self._cache_misses += 1
            data = await self.retrieve(analysis)
            self._cache.set(key, copy.deepcopy(data), CacheCategory.QUERY, ttl=self._config.query_cache_ttl)

        self._processing_ms.append((time.perf_counter() - started) * 1000.0)
        return analysis, data

    def get_metrics(self) -> RetrievalMetrics:
        average = float(np.mean(self._processing_ms)) if self._processing_ms else 0.0
        return RetrievalMetrics(
            queries_processed=self._queries_processed,
            cache_hits=self._cache_hits,
            cache_misses=self._cache_misses,
            entity_counts=dict(self._entity_counts),
            intent_counts=dict(self._intent_counts),
            average_processing_ms=average,
        )

    # ------------------------------------------------------------------
    # Branch execution
    # ------------------------------------------------------------------

    async def _run_branches(self, branches: List[Tuple[str, Awaitable[list]]], data: RetrievedData) -> None:
        """Run branches in parallel and add their records in branch order"""
        if not branches:
            return
        results = await asyncio.gather(*(b for _, b in branches), return_exceptions=True)
        for (name, _), result in zip(branches, results):
            if isinstance(result, Exception):
                logger.warning("Retrieval branch %s failed: %s", name, result)
                continue
            if isinstance(result, BaseException):
                raise result
            data.add(result)

    # ------------------------------------------------------------------
    # Phase 1: entities
    # ------------------------------------------------------------------

    async def _retrieve_entities(self, analysis: QueryAnalysis, data: RetrievedData) -> None:
        handlers = {
            EntityType.EMPLOYEE: self._employee_records,
            EntityType.CANDIDATE: self._candidate_records,
            EntityType.JOB: self._job_records,
            EntityType.DEPARTMENT: self._department_records,
            EntityType.DATE: self._date_records,
            EntityType.TIME_PERIOD: self._period_records,
        }
        branches = []
        for entity in analysis.entities:
            handler = handlers.get(entity.entity_type)
            if handler is not None:
                branches.append((f"{entity.entity_type.value}:{entity.value}", handler(entity)))
        await self._run_branches(branches, data)

    async def _employee_records(self, entity: DetectedEntity) -> List[Employee]:
        if entity.record_id:
            employee = await self._service.get_employee(entity.record_id)
            return [employee] if employee else []
        wanted = entity.value.lower()
        return [
            e for e in await self._service.get_employees()
            if wanted in e.full_name.lower() or wanted in e.first_name.lower() or wanted in e.last_name.lower()
        ]

    async def _candidate_records(self, entity: DetectedEntity) -> list:
        if entity.record_id:
            candidate = await self._service.get_candidate(entity.record_id)
            candidates = [candidate] if candidate else []
        else:
            wanted = entity.value.lower()
            candidates = [
                c for c in await self._service.get_candidates()
                if wanted in c.full_name.lower() or wanted in c.first_name.lower() or wanted in c.last_name.lower()
            ]
        jobs = await asyncio.gather(
            *(self._service.get_job(c.job_id) for c in candidates if c.job_id),
            return_exceptions=True,
        )
        found = []
        for job in jobs:
            if isinstance(job, Exception):
                logger.warning("Job lookup for candidate %s failed: %s", entity.value, job)
            elif job is not None:
                found.append(job)
        return [*candidates, *found]

    async def _job_records(self, entity: DetectedEntity) -> List[Job]:
        if entity.record_id:
            job = await self._service.get_job(entity.record_id)
            return [job] if job else []
        wanted = entity.value.lower()
        return [j for j in await self._service.get_jobs() if wanted in j.title.lower()]

    async def _department_records(self, entity: DetectedEntity) -> List[Employee]:
        return await self._service.get_employees_by_department(entity.value)

    async def _date_records(self, entity: DetectedEntity) -> List[Shift]:
        return await self._service.get_shifts_by_date_range(entity.value, entity.value)

    async def _period_records(self, entity: DetectedEntity) -> List[Shift]:
        period = self.date_range(entity)
        if period is None:
            return []
        start, end = period
        return await self._service.get_shifts_by_date_range(start.isoformat(), end.isoformat())

    def date_range(self, entity: DetectedEntity) -> Optional[Tuple[date, date]]:
        """
        Resolve a time-period entity to an inclusive date range.

        Weeks run Sunday through Saturday. Quarters are not resolved.
        """
        start = entity.metadata.get("start_date")
        end = entity.metadata.get("end_date")
        if start and end:
            return date.fromisoformat(start), date.fromisoformat(end)

        today = self._today()
        period = entity.value
        if period in ("this_week", "next_week", "last_week"):
            sunday = today - timedelta(days=(today.weekday() + 1) % 7)
            offset = {"this_week": 0, "next_week": 7, "last_week": -7}[period]
            sunday += timedelta(days=offset)
            return sunday, sunday + timedelta(days=6)
        if period in ("this_month", "next_month", "last_month"):
            year, month = today.year, today.month + {"this_month": 0, "next_month": 1, "last_month": -1}[period]
            if month == 0:
                year, month = year - 1, 12
            elif month == 13:
                year, month = year + 1, 1
            last_day = calendar.monthrange(year, month)[1]
            return date(year, month, 1), date(year, month, last_day)
        if period == "today":
            return today, today
        if period == "tomorrow":
            day = today + timedelta(days=1)
            return day, day
        if period == "yesterday":
            day = today - timedelta(days=1)
            return day, day
        return None

    # ------------------------------------------------------------------
    # Phase 2: intent expansion
    # ------------------------------------------------------------------

    async def _expand_by_intent(self, analysis: QueryAnalysis, data: RetrievedData) -> None:
        primary = analysis.primary_intent
        category = primary.category
        branches = []

        for employee in list(data.employees):
            if category == IntentCategory.SCHEDULE_MANAGEMENT or primary.has_sub_intent("view_schedule"):
                branches.append((f"shifts:{employee.id}", self._service.get_shifts_by_employee(employee.id)))
            if category == IntentCategory.TASK_MANAGEMENT or primary.has_sub_intent("view_tasks"):
                branches.append((f"tasks:{employee.id}", self._service.get_tasks_by_employee(employee.id)))
            if category == IntentCategory.RECOGNITION or primary.has_sub_intent("view_recognitions"):
                branches.append((
                    f"recognitions:{employee.id}", self._service.get_recognitions_by_employee(employee.id)
                ))

        known_jobs = {job.id for job in data.jobs}
        for job_id in dict.fromkeys(c.job_id for c in data.candidates if c.job_id):
            if job_id not in known_jobs:
                branches.append((f"job:{job_id}", self._single(self._service.get_job(job_id))))

        if category in CANDIDATE_INTENTS or primary.has_sub_intent("view_candidates"):
            for job in list(data.jobs):
                branches.append((f"candidates:{job.id}", self._service.get_candidates_by_job(job.id)))

        await self._run_branches(branches, data)

    @staticmethod
    async def _single(lookup: Awaitable[Any]) -> list:
        record = await lookup
        return [record] if record is not None else []

    # ------------------------------------------------------------------
    # Phase 3: contextual defaults
    # ------------------------------------------------------------------

    async def _contextual_defaults(self, analysis: QueryAnalysis, data: RetrievedData) -> None:
        limit = self._config.contextual_limit
        category = analysis.primary_intent.category
        try:
            if category == IntentCategory.SCHEDULE_MANAGEMENT:
                today = self._today()
                until = today + timedelta(days=self._config.upcoming_shift_days)
                shifts = await self._service.get_shifts_by_date_range(today.isoformat(), until.isoformat())
                data.add(shifts[:limit])
            elif category == IntentCategory.TASK_MANAGEMENT:
                pending, in_progress = await asyncio.gather(
                    self._service.get_tasks_by_status("pending"),
                    self._service.get_tasks_by_status("in_progress"),
                )
                data.add([*pending, *in_progress][:limit])
            elif category == IntentCategory.JOB_MANAGEMENT:
                data.add((await self._service.get_jobs_by_status("open"))[:limit])
            elif category == IntentCategory.CANDIDATE_MANAGEMENT:
                interview, offer = await asyncio.gather(
                    self._service.get_candidates_by_stage("interview"),
                    self._service.get_candidates_by_stage("offer"),
                )
                await self._add_candidates_with_jobs([*interview, *offer][:limit], data)
            elif category == IntentCategory.INTERVIEW_PROCESS:
                interview = await self._service.get_candidates_by_stage("interview")
                await self._add_candidates_with_jobs(interview[:limit], data)
        except Exception as e:
            logger.warning("Contextual defaults for %s failed: %s", category.value, e)

    async def _add_candidates_with_jobs(self, candidates: List[Candidate], data: RetrievedData) -> None:
        data.add(candidates)
        job_ids = list(dict.fromkeys(c.job_id for c in candidates if c.job_id))
        await self._run_branches(
            [(f"job:{job_id}", self._single(self._service.get_job(job_id))) for job_id in job_ids],
            data,
        )

    # ------------------------------------------------------------------
    # Phase 4: relationships
    # ------------------------------------------------------------------

    @staticmethod
    def _index_relationships(data: RetrievedData) -> None:
        related = RelatedData()
        by_id = {e.id: e for e in data.employees}

        for employee in data.employees:
            if employee.manager and employee.manager in by_id:
                related.managers[employee.id] = by_id[employee.manager]
            reports = [e for e in data.employees if e.manager == employee.id]
            if reports:
                related.direct_reports[employee.id] = reports

            shifts = [s for s in data.shifts if s.employee_id == employee.id]
            if shifts:
                related.employee_shifts[employee.id] = shifts
            tasks = [t for t in data.tasks if t.employee_id == employee.id]
            if tasks:
                related.employee_tasks[employee.id] = tasks

        for job in data.jobs:
            candidates = [c for c in data.candidates if c.job_id == job.id]
            if candidates:
                related.job_candidates[job.id] = candidates

        data.related = related
