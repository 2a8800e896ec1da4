"""
Cached Record Service

The only entry point the rest of the system uses for record access.
Composes the Tiered Cache, the Record Store and one Request Coalescer per
id-addressable collection into memoized accessors, derived views and
composite (dashboard / profile / job detail) queries.

Lookup paths:
- get by id:   cache -> coalescer -> cache
- get all:     cache -> record store -> cache
- filtered:    cache -> cached "all" + in-process filter -> cache
- composite:   cache -> parallel sub-fetches -> cache (category "query")
"""

import asyncio
import hashlib
import json
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

import numpy as np

from ..common.config import CoalescerConfig
from ..common.errors import HRAssistError
from ..common.schemas.records import (
    Candidate,
    Collection,
    Employee,
    Job,
    Recognition,
    Shift,
    Task,
    TaskKind,
    TASK_COLLECTIONS,
)
from .cache import CacheStats, TieredCache
from .coalescer import RequestCoalescer
from .record_store import RecordStore

logger = logging.getLogger("hrassist.data.record_service")


class CacheCategory:
    """Cache namespaces used by the service"""
    EMPLOYEES = "employees"
    SHIFTS = "shifts"
    TASKS = "tasks"
    JOBS = "jobs"
    CANDIDATES = "candidates"
    RECOGNITION = "recognition"
    RELATIONSHIPS = "relationships"
    QUERY = "query"


# Data kinds accepted by invalidate() and the categories each one dirties
KIND_CATEGORIES = {
    "employees": [CacheCategory.EMPLOYEES, CacheCategory.RELATIONSHIPS],
    "shifts": [CacheCategory.SHIFTS],
    "tasks": [CacheCategory.TASKS],
    "employee_tasks": [CacheCategory.TASKS],
    "talent_tasks": [CacheCategory.TASKS],
    "recognition_tasks": [CacheCategory.TASKS],
    "shift_tasks": [CacheCategory.TASKS],
    "jobs": [CacheCategory.JOBS],
    "candidates": [CacheCategory.CANDIDATES],
    "recognition": [CacheCategory.RECOGNITION],
    "recognitions": [CacheCategory.RECOGNITION],
    "relationships": [CacheCategory.RELATIONSHIPS],
    "query": [CacheCategory.QUERY],
}

DATE_SCOPED_TTL = 5 * 60
LATENCY_WINDOW = 100

# Warm-up TTLs applied by preload()
PRELOAD_EMPLOYEES_TTL = 15 * 60
PRELOAD_OPEN_JOBS_TTL = 30 * 60
PRELOAD_CANDIDATES_TTL = 15 * 60


def query_key(name: str, **params: Any) -> str:
    """Deterministic cache key for a parameterized query"""
    payload = json.dumps(params, sort_keys=True, default=str)
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]
    return f"{name}_{digest}"


# ============================================================================
# Composite results
# ============================================================================

@dataclass
class ManagerDashboard:
    """Everything a manager's landing view needs"""
    manager_id: str
    team: List[Employee] = field(default_factory=list)
    talent_tasks: List[Task] = field(default_factory=list)
    recognition_tasks: List[Task] = field(default_factory=list)
    shift_tasks: List[Task] = field(default_factory=list)
    jobs: List[Job] = field(default_factory=list)
    candidates: List[Candidate] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.missing)


@dataclass
class EmployeeProfile:
    """One employee with their work items and reporting line"""
    employee: Employee
    tasks: List[Task] = field(default_factory=list)
    shifts: List[Shift] = field(default_factory=list)
    recognitions: List[Recognition] = field(default_factory=list)
    manager: Optional[Employee] = None
    direct_reports: List[Employee] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.missing)


@dataclass
class JobDetails:
    """A job posting with its pipeline"""
    job: Job
    candidates: List[Candidate] = field(default_factory=list)
    hiring_manager: Optional[Employee] = None
    missing: List[str] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return bool(self.missing)


@dataclass
class ServiceMetrics:
    """Observability snapshot for the hosting application"""
    total_requests: int
    cache_hits: int
    cache_misses: int
    batched_requests: int
    coalesced_requests: int
    average_latency_ms: float
    p95_latency_ms: float
    cache: CacheStats

    @property
    def cache_hit_rate(self) -> float:
        total = self.cache_hits + self.cache_misses
        return self.cache_hits / total if total else 0.0

    @property
    def batched_request_rate(self) -> float:
        return self.batched_requests / self.coalesced_requests if self.coalesced_requests else 0.0


class CachedRecordService:
    """
    Memoized record access over a RecordStore.

    Responsibilities:
    1. Serve collections and filtered views from the Tiered Cache
    2. Route get-by-id lookups through per-collection Request Coalescers
    3. Compose dashboard, profile and job-detail queries in parallel
    4. Invalidate cache categories when the write path reports a mutation
    5. Track hit rate, batching rate and latency
    """

    def __init__(
        self,
        store: RecordStore,
        cache: TieredCache,
        coalescer_config: Optional[CoalescerConfig] = None,
    ):
        """
        Initialize service.

        Args:
            store: Authoritative record source
            cache: Shared Tiered Cache
            coalescer_config: Batching window (defaults if omitted)
        """
        self._store = store
        self._cache = cache
        window = (coalescer_config or CoalescerConfig()).window_ms / 1000.0

        self._employee_batcher = RequestCoalescer(Collection.EMPLOYEES.value, self.get_employees, window)
        self._job_batcher = RequestCoalescer(Collection.JOBS.value, self.get_jobs, window)
        self._candidate_batcher = RequestCoalescer(Collection.CANDIDATES.value, self.get_candidates, window)

        self._total_requests = 0
        self._cache_hits = 0
        self._cache_misses = 0
        self._latencies = deque(maxlen=LATENCY_WINDOW)

    @property
    def cache(self) -> TieredCache:
        return self._cache

    # ------------------------------------------------------------------
    # Core lookup paths
    # ------------------------------------------------------------------

    def _track(self, started: float, hit: bool) -> None:
        self._total_requests += 1
        if hit:
            self._cache_hits += 1
        else:
            self._cache_misses += 1
        self._latencies.append((time.perf_counter() - started) * 1000.0)

    async def _cached(
        self,
        category: str,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        started = time.perf_counter()
        value = self._cache.get(key, category)
        if value is not None:
            self._track(started, hit=True)
            return value

        value = await fetch()
        self._cache.set(key, value, category, ttl)
        self._track(started, hit=False)
        return value

    async def _get_by_id(
        self,
        category: str,
        key: str,
        batcher: RequestCoalescer,
        record_id: str,
    ) -> Optional[Any]:
        started = time.perf_counter()
        cached = self._cache.get(key, category)
        if cached is not None:
            self._track(started, hit=True)
            return cached

        record = await batcher.request(record_id)
        if record is not None:
            self._cache.set(key, record, category)
        self._track(started, hit=False)
        return record

    async def _filtered(
        self,
        category: str,
        key: str,
        source: Callable[[], Awaitable[list]],
        predicate: Callable[[Any], bool],
        ttl: Optional[float] = None,
    ) -> list:
        async def fetch():
            return [item for item in await source() if predicate(item)]

        return await self._cached(category, key, fetch, ttl)

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    async def get_employees(self) -> List[Employee]:
        return await self._cached(
            CacheCategory.EMPLOYEES, "all",
            lambda: self._store.get_all(Collection.EMPLOYEES),
        )

    async def get_employee(self, employee_id: str) -> Optional[Employee]:
        return await self._get_by_id(
            CacheCategory.EMPLOYEES, f"employee_{employee_id}", self._employee_batcher, employee_id
        )

    async def get_employees_by_manager(self, manager_id: str) -> List[Employee]:
        return await self._filtered(
            CacheCategory.RELATIONSHIPS, f"manager_{manager_id}",
            self.get_employees, lambda e: e.manager == manager_id,
        )

    async def get_employees_by_department(self, department: str) -> List[Employee]:
        wanted = department.lower()
        return await self._filtered(
            CacheCategory.RELATIONSHIPS, f"department_{wanted}",
            self.get_employees, lambda e: e.department.lower() == wanted,
        )

    # ------------------------------------------------------------------
    # Shifts
    # ------------------------------------------------------------------

    async def get_shifts(self) -> List[Shift]:
        return await self._cached(
            CacheCategory.SHIFTS, "all",
            lambda: self._store.get_all(Collection.SHIFTS),
        )

    async def get_shifts_by_employee(self, employee_id: str) -> List[Shift]:
        return await self._filtered(
            CacheCategory.SHIFTS, f"employee_{employee_id}",
            self.get_shifts, lambda s: s.employee_id == employee_id,
        )

    async def get_shifts_by_date_range(self, start_date: str, end_date: str) -> List[Shift]:
        """Shifts that start on or after ``start_date`` and end on or before ``end_date`` (ISO dates)"""
        return await self._filtered(
            CacheCategory.SHIFTS, f"date_{start_date}_{end_date}",
            self.get_shifts,
            lambda s: s.start_date >= start_date and s.end_date <= end_date,
            ttl=DATE_SCOPED_TTL,
        )

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def get_tasks(self, task_kind: TaskKind = TaskKind.EMPLOYEE) -> List[Task]:
        task_kind = TaskKind(task_kind)
        collection = TASK_COLLECTIONS[task_kind]
        return await self._cached(
            CacheCategory.TASKS, f"all_{task_kind.value}",
            lambda: self._store.get_all(collection),
        )

    async def get_tasks_by_employee(self, employee_id: str) -> List[Task]:
        return await self._filtered(
            CacheCategory.TASKS, f"employee_{employee_id}",
            self.get_tasks, lambda t: t.employee_id == employee_id,
        )

    async def get_tasks_by_status(self, status: str) -> List[Task]:
        return await self._filtered(
            CacheCategory.TASKS, f"status_{status}",
            self.get_tasks, lambda t: t.status == status,
        )

    async def get_manager_tasks(self, manager_id: str, task_kind: TaskKind) -> List[Task]:
        task_kind = TaskKind(task_kind)
        return await self._filtered(
            CacheCategory.TASKS, f"manager_{manager_id}_{task_kind.value}",
            lambda: self.get_tasks(task_kind), lambda t: t.manager_id == manager_id,
        )

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    async def get_jobs(self) -> List[Job]:
        return await self._cached(
            CacheCategory.JOBS, "all",
            lambda: self._store.get_all(Collection.JOBS),
        )

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await self._get_by_id(CacheCategory.JOBS, f"job_{job_id}", self._job_batcher, job_id)

    async def get_jobs_by_status(self, status: str) -> List[Job]:
        return await self._filtered(
            CacheCategory.JOBS, f"status_{status}",
            self.get_jobs, lambda j: j.status == status,
        )

    async def get_jobs_by_hiring_manager(self, manager_id: str) -> List[Job]:
        return await self._filtered(
            CacheCategory.JOBS, f"manager_{manager_id}",
            self.get_jobs, lambda j: j.hiring_manager == manager_id,
        )

    # ------------------------------------------------------------------
    # Candidates
    # ------------------------------------------------------------------

    async def get_candidates(self) -> List[Candidate]:
        return await self._cached(
            CacheCategory.CANDIDATES, "all",
            lambda: self._store.get_all(Collection.CANDIDATES),
        )

    async def get_candidate(self, candidate_id: str) -> Optional[Candidate]:
        return await self._get_by_id(
            CacheCategory.CANDIDATES, f"candidate_{candidate_id}", self._candidate_batcher, candidate_id
        )

    async def get_candidates_by_job(self, job_id: str) -> List[Candidate]:
        return await self._filtered(
            CacheCategory.CANDIDATES, f"job_{job_id}",
            self.get_candidates, lambda c: c.job_id == job_id,
        )

    async def get_candidates_by_stage(self, stage: str) -> List[Candidate]:
        return await self._filtered(
            CacheCategory.CANDIDATES, f"stage_{stage}",
            self.get_candidates, lambda c: c.stage == stage,
        )

    # ------------------------------------------------------------------
    # Recognition
    # ------------------------------------------------------------------

    async def get_recognitions(self) -> List[Recognition]:
        return await self._cached(
            CacheCategory.RECOGNITION, "all",
            lambda: self._store.get_all(Collection.RECOGNITION),
        )

    async def get_recognitions_by_employee(self, employee_id: str) -> List[Recognition]:
        return await self._filtered(
            CacheCategory.RECOGNITION, f"employee_{employee_id}",
            self.get_recognitions, lambda r: r.involves(employee_id),
        )

    # ------------------------------------------------------------------
    # Composite queries
    # ------------------------------------------------------------------

    async def _gather_slices(
        self, slices: Dict[str, Awaitable[Any]]
    ) -> Tuple[Dict[str, Any], List[str]]:
        """Run named sub-fetches in parallel; failed slices come back as None and are named"""
        names = list(slices)
        results = await asyncio.gather(*slices.values(), return_exceptions=True)
        values: Dict[str, Any] = {}
        missing: List[str] = []
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning("Composite slice %s failed: %s", name, result)
                values[name] = None
                missing.append(name)
            elif isinstance(result, BaseException):
                raise result
            else:
                values[name] = result
        return values, missing

    async def get_manager_dashboard(self, manager_id: str) -> ManagerDashboard:
        """
        Team, manager task queues, requisitions and their candidates.

        A failed slice is left empty and listed in ``missing``; partial
        dashboards are not cached.
        """
        key = query_key("dashboard", manager_id=manager_id)
        cached = self._cache.get(key, CacheCategory.QUERY)
        if cached is not None:
            return cached

        values, missing = await self._gather_slices({
            "team": self.get_employees_by_manager(manager_id),
            "talent_tasks": self.get_manager_tasks(manager_id, TaskKind.TALENT),
            "recognition_tasks": self.get_manager_tasks(manager_id, TaskKind.RECOGNITION),
            "shift_tasks": self.get_manager_tasks(manager_id, TaskKind.SHIFT),
            "jobs": self.get_jobs_by_hiring_manager(manager_id),
        })

        jobs = values["jobs"] or []
        candidates: List[Candidate] = []
        if jobs:
            per_job, failed = await self._gather_slices(
                {job.id: self.get_candidates_by_job(job.id) for job in jobs}
            )
            for job in jobs:
                candidates.extend(per_job[job.id] or [])
            if failed:
                missing.append("candidates")

        dashboard = ManagerDashboard(
            manager_id=manager_id,
            team=values["team"] or [],
            talent_tasks=values["talent_tasks"] or [],
            recognition_tasks=values["recognition_tasks"] or [],
            shift_tasks=values["shift_tasks"] or [],
            jobs=jobs,
            candidates=candidates,
            missing=missing,
        )
        if not dashboard.is_partial:
            self._cache.set(key, dashboard, CacheCategory.QUERY)
        return dashboard

    async def get_employee_profile(self, employee_id: str) -> Optional[EmployeeProfile]:
        """
        Employee with tasks, shifts, recognitions, manager and direct reports.

        Returns:
            None if the employee does not exist
        """
        key = query_key("profile", employee_id=employee_id)
        cached = self._cache.get(key, CacheCategory.QUERY)
        if cached is not None:
            return cached

        employee = await self.get_employee(employee_id)
        if employee is None:
            return None

        slices = {
            "tasks": self.get_tasks_by_employee(employee_id),
            "shifts": self.get_shifts_by_employee(employee_id),
            "recognitions": self.get_recognitions_by_employee(employee_id),
        }
        if employee.manager:
            slices["manager"] = self.get_employee(employee.manager)
        if "Manager" in employee.position or "Director" in employee.position:
            slices["direct_reports"] = self.get_employees_by_manager(employee_id)
        values, missing = await self._gather_slices(slices)

        profile = EmployeeProfile(
            employee=employee,
            tasks=values["tasks"] or [],
            shifts=values["shifts"] or [],
            recognitions=values["recognitions"] or [],
            manager=values.get("manager"),
            direct_reports=values.get("direct_reports") or [],
            missing=missing,
        )
        if not profile.is_partial:
            self._cache.set(key, profile, CacheCategory.QUERY)
        return profile

    async def get_job_details(self, job_id: str) -> Optional[JobDetails]:
        """
        Job posting with its candidates and hiring manager.

        Returns:
            None if the job does not exist
        """
        key = query_key("details", job_id=job_id)
        cached = self._cache.get(key, CacheCategory.QUERY)
        if cached is not None:
            return cached

        job = await self.get_job(job_id)
        if job is None:
            return None

        slices = {"candidates": self.get_candidates_by_job(job_id)}
        if job.hiring_manager:
            slices["hiring_manager"] = self.get_employee(job.hiring_manager)
        values, missing = await self._gather_slices(slices)

        details = JobDetails(
            job=job,
            candidates=values["candidates"] or [],
            hiring_manager=values.get("hiring_manager"),
            missing=missing,
        )
        if not details.is_partial:
            self._cache.set(key, details, CacheCategory.QUERY, ttl=10 * 60)
        return details

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def preload(self) -> bool:
        """
        Warm the cache with the roster, open jobs and active pipeline stages.

        Returns:
            True if everything was loaded; failures are logged, never raised
        """
        try:
            employees = await self._store.get_all(Collection.EMPLOYEES)
            self._cache.set("all", employees, CacheCategory.EMPLOYEES, ttl=PRELOAD_EMPLOYEES_TTL)

            jobs = await self._store.get_all(Collection.JOBS)
            self._cache.set("all", jobs, CacheCategory.JOBS)
            open_jobs = [job for job in jobs if job.status == "open"]
            self._cache.set("status_open", open_jobs, CacheCategory.JOBS, ttl=PRELOAD_OPEN_JOBS_TTL)

            candidates = await self._store.get_all(Collection.CANDIDATES)
            self._cache.set("all", candidates, CacheCategory.CANDIDATES)
            for stage in ("interview", "offer"):
                staged = [c for c in candidates if c.stage == stage]
                self._cache.set(f"stage_{stage}", staged, CacheCategory.CANDIDATES, ttl=PRELOAD_CANDIDATES_TTL)
        except HRAssistError as e:
            logger.warning("Preloading common data failed: %s", e)
            return False

        logger.info(
            "Preloaded %d employees, %d open jobs, %d candidates",
            len(employees), len(open_jobs), len(candidates),
        )
        return True

    def invalidate(self, kinds: Iterable[str]) -> List[str]:
        """
        Clear cache categories after an external mutation.

        ``employees`` also clears ``relationships``; every data kind also
        clears ``query``; ``all`` clears everything.

        Returns:
            Categories that were cleared
        """
        categories = set()
        for kind in kinds:
            if kind == "all":
                self._cache.clear()
                logger.info("Cleared entire cache")
                return ["all"]
            mapped = KIND_CATEGORIES.get(kind)
            if mapped is None:
                logger.warning("Ignoring unknown cache kind: %s", kind)
                continue
            categories.update(mapped)
            categories.add(CacheCategory.QUERY)

        cleared = sorted(categories)
        for category in cleared:
            self._cache.clear_category(category)
        if cleared:
            logger.info("Invalidated cache categories: %s", ", ".join(cleared))
        return cleared

    def get_metrics(self) -> ServiceMetrics:
        batchers = (self._employee_batcher, self._job_batcher, self._candidate_batcher)
        batch_stats = [b.stats() for b in batchers]
        if self._latencies:
            samples = np.fromiter(self._latencies, dtype=float)
            average = float(np.mean(samples))
            p95 = float(np.percentile(samples, 95))
        else:
            average = p95 = 0.0
        return ServiceMetrics(
            total_requests=self._total_requests,
            cache_hits=self._cache_hits,
            cache_misses=self._cache_misses,
            batched_requests=sum(s.batched_requests for s in batch_stats),
            coalesced_requests=sum(s.requests for s in batch_stats),
            average_latency_ms=average,
            p95_latency_ms=p95,
            cache=self._cache.stats(),
        )

    async def close(self) -> None:
        """Drain pending coalesced lookups"""
        for batcher in (self._employee_batcher, self._job_batcher, self._candidate_batcher):
            await batcher.close()
