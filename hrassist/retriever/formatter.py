"""
Data Formatter

Renders RetrievedData as the markdown block that goes into the model's
system prompt. Each record type gets its own section, ordered by what
matters most for that type, and the whole block can be rendered at three
compression levels so the budget manager can shrink it.
"""

import re
from collections import Counter
from enum import Enum
from typing import Any, Callable, Dict, List

from ..common.schemas.records import Candidate, Employee, Job, Recognition, Shift, Task, TaskKind
from .orchestrator import RetrievedData

NO_DATA_TEXT = "No specific data available for this query."

MAX_ITEMS_PER_TYPE = 10
DETAIL_VIEW_LIMIT = 3
HIGH_COMPRESSION_ITEMS = 5

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}
STAGE_ORDER = {"offer": 0, "interview": 1, "application": 2}

TASK_SECTIONS = {
    TaskKind.EMPLOYEE: "Employee Tasks",
    TaskKind.TALENT: "Talent Tasks",
    TaskKind.RECOGNITION: "Recognition Tasks",
    TaskKind.SHIFT: "Shift Tasks",
}


class CompressionLevel(str, Enum):
    """How aggressively formatted data is shortened"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# ============================================================================
# Prioritization
# ============================================================================

def prioritize_shifts(shifts: List[Shift]) -> List[Shift]:
    return sorted(shifts, key=lambda s: s.start_date)


def prioritize_tasks(tasks: List[Task]) -> List[Task]:
    return sorted(tasks, key=lambda t: (PRIORITY_ORDER.get(t.priority, len(PRIORITY_ORDER)), t.due_date or "9999"))


def prioritize_jobs(jobs: List[Job]) -> List[Job]:
    return sorted(jobs, key=lambda j: j.posting_date, reverse=True)


def prioritize_candidates(candidates: List[Candidate]) -> List[Candidate]:
    newest_first = sorted(candidates, key=lambda c: c.application_date, reverse=True)
    return sorted(newest_first, key=lambda c: STAGE_ORDER.get(c.stage, len(STAGE_ORDER)))


def prioritize_recognitions(recognitions: List[Recognition]) -> List[Recognition]:
    return sorted(recognitions, key=lambda r: r.date, reverse=True)


# ============================================================================
# Prompt compression
# ============================================================================

def compress_text(text: str, level: CompressionLevel = CompressionLevel.LOW) -> str:
    """Whitespace and markup cleanup; higher levels also drop parentheticals and emphasis"""
    level = CompressionLevel(level)
    text = re.sub(r"[ \t]+\n", "\n", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    if level in (CompressionLevel.MEDIUM, CompressionLevel.HIGH):
        text = re.sub(r"[ \t]{2,}", " ", text)
        text = re.sub(r"\n\n+", "\n", text)
    if level == CompressionLevel.HIGH:
        text = re.sub(r"\s*\([^()\n]*\)", "", text)
        text = text.replace("**", "")
        text = re.sub(r"^#{1,6}\s*", "", text, flags=re.MULTILINE)
    return text.strip()


class DataFormatter:
    """
    Formats retrieved records for the system prompt.

    Features:
    - One section per record type, tasks split by workflow
    - Detailed view for small sets, compact view with status counts otherwise
    - At most 10 items per type, ordered by type-specific priority
    - Relationship and statistics sections at lower compression levels
    """

    def format(self, data: RetrievedData, level: CompressionLevel = CompressionLevel.LOW) -> str:
        """
        Render retrieved data.

        Args:
            data: Records from the orchestrator
            level: Compression level

        Returns:
            Markdown text, or a fixed notice when there is no data
        """
        level = CompressionLevel(level)
        if data is None or data.is_empty():
            return NO_DATA_TEXT

        names = {e.id: e.full_name for e in data.employees}
        sections: List[str] = []

        self._add_section(sections, "Employees", "employees", data.employees,
                          self._employee_detail, self._employee_line, level)
        self._add_section(sections, "Shifts", "shifts", prioritize_shifts(data.shifts),
                          lambda s: self._shift_detail(s, names), lambda s: self._shift_line(s, names), level)

        by_kind: Dict[TaskKind, List[Task]] = {}
        for task in data.tasks:
            by_kind.setdefault(task.task_kind, []).append(task)
        for kind, title in TASK_SECTIONS.items():
            self._add_section(sections, title, "tasks", prioritize_tasks(by_kind.get(kind, [])),
                              lambda t: self._task_detail(t, names), lambda t: self._task_line(t, names), level)

        self._add_section(sections, "Jobs", "jobs", prioritize_jobs(data.jobs),
                          self._job_detail, self._job_line, level)
        self._add_section(sections, "Candidates", "candidates", prioritize_candidates(data.candidates),
                          self._candidate_detail, self._candidate_line, level)
        self._add_section(sections, "Recognition", "recognitions", prioritize_recognitions(data.recognitions),
                          lambda r: self._recognition_line(r, names), lambda r: self._recognition_line(r, names),
                          level)

        if level != CompressionLevel.HIGH:
            relationships = self._relationships(data, names)
            if relationships:
                sections.append(relationships)
        if level == CompressionLevel.LOW:
            sections.append(self._statistics(data))

        return compress_text("\n\n".join(sections), level)

    def _add_section(
        self,
        sections: List[str],
        title: str,
        noun: str,
        items: List[Any],
        detail: Callable[[Any], str],
        line: Callable[[Any], str],
        level: CompressionLevel,
    ) -> None:
        if not items:
            return
        limit = HIGH_COMPRESSION_ITEMS if level == CompressionLevel.HIGH else MAX_ITEMS_PER_TYPE
        shown = items[:limit]
        lines = [f"### {title}"]

        if len(items) > DETAIL_VIEW_LIMIT or level == CompressionLevel.HIGH:
            lines.append(f"{len(items)} {noun} found.")
            statuses = Counter(getattr(item, "status", "") or "unknown" for item in items)
            lines.append("By status: " + ", ".join(f"{s} ({n})" for s, n in sorted(statuses.items())))
            lines.extend(f"- {line(item)}" for item in shown)
        else:
            lines.extend(detail(item) for item in shown)

        if len(items) > len(shown):
            lines.append(f"...and {len(items) - len(shown)} more")
        sections.append("\n".join(lines))

    # ------------------------------------------------------------------
    # Per-type views
    # ------------------------------------------------------------------

    @staticmethod
    def _employee_detail(e: Employee) -> str:
        lines = [f"**{e.full_name}** ({e.id})"]
        if e.position or e.department:
            lines.append(f"  Role: {e.position}, {e.department}")
        if e.email or e.phone:
            lines.append(f"  Contact: {e.email} {e.phone}".rstrip())
        if e.manager:
            lines.append(f"  Manager: {e.manager}")
        if e.location or e.work_type:
            lines.append(f"  Location: {e.location} {e.work_type}".rstrip())
        if e.hire_date:
            lines.append(f"  Hired: {e.hire_date}")
        if e.skills:
            lines.append(f"  Skills: {', '.join(e.skills)}")
        return "\n".join(lines)

    @staticmethod
    def _employee_line(e: Employee) -> str:
        return f"{e.full_name} ({e.id}), {e.position}, {e.department}"

    @staticmethod
    def _shift_line(s: Shift, names: Dict[str, str]) -> str:
        who = names.get(s.employee_id, s.employee_id)
        return f"{who}: {s.start_date} to {s.end_date} ({s.type or 'shift'}, {s.status or 'scheduled'})"

    @classmethod
    def _shift_detail(cls, s: Shift, names: Dict[str, str]) -> str:
        lines = [cls._shift_line(s, names)]
        for day in s.schedule:
            hours = f"{day.start_time}-{day.end_time}" if day.start_time else "off"
            lines.append(f"  {day.day}: {hours}")
        if s.location:
            lines.append(f"  Location: {s.location}")
        return "\n".join(lines)

    @staticmethod
    def _task_line(t: Task, names: Dict[str, str]) -> str:
        owner = names.get(t.employee_id or "", t.employee_id or t.manager_id or "unassigned")
        due = f", due {t.due_date}" if t.due_date else ""
        return f"{t.title} [{t.priority}] {t.status}{due} ({owner})"

    @classmethod
    def _task_detail(cls, t: Task, names: Dict[str, str]) -> str:
        lines = [f"**{cls._task_line(t, names)}**"]
        if t.description:
            lines.append(f"  {t.description}")
        if t.assigned_by:
            lines.append(f"  Assigned by: {t.assigned_by} on {t.assigned_date}")
        return "\n".join(lines)

    @staticmethod
    def _job_line(j: Job) -> str:
        return f"{j.title} ({j.id}), {j.department}, {j.status}, {j.application_count} applications"

    @staticmethod
    def _job_detail(j: Job) -> str:
        lines = [f"**{j.title}** ({j.id})"]
        lines.append(f"  Department: {j.department}  Location: {j.location} {j.work_type}".rstrip())
        lines.append(f"  Status: {j.status}, posted {j.posting_date or 'n/a'}, priority {j.priority}")
        lines.append(f"  Pipeline: {j.application_count} applications, {j.interviews} interviews")
        if j.salary:
            lines.append(f"  Salary: {j.salary.min:,.0f}-{j.salary.max:,.0f} {j.salary.currency}")
        if j.requirements:
            lines.append(f"  Requirements: {'; '.join(j.requirements)}")
        if j.hiring_manager:
            lines.append(f"  Hiring manager: {j.hiring_manager}")
        return "\n".join(lines)

    @staticmethod
    def _candidate_line(c: Candidate) -> str:
        return f"{c.full_name} ({c.id}), {c.stage} for {c.job_id}, applied {c.application_date}"

    @staticmethod
    def _candidate_detail(c: Candidate) -> str:
        lines = [f"**{c.full_name}** ({c.id})"]
        lines.append(f"  Job: {c.job_id}  Stage: {c.stage}  Status: {c.status}")
        if c.application_date:
            lines.append(f"  Applied: {c.application_date}")
        if c.skills:
            lines.append(f"  Skills: {', '.join(c.skills)}")
        if c.experience:
            lines.append(f"  Experience: {c.experience}")
        for feedback in c.interview_feedback:
            lines.append(
                f"  Feedback from {feedback.interviewer_id}: {feedback.score} ({feedback.recommendation or 'n/a'})"
            )
        if c.offer_details:
            lines.append(f"  Offer: {c.offer_details.salary:,.0f}, start {c.offer_details.start_date}")
        return "\n".join(lines)

    @staticmethod
    def _recognition_line(r: Recognition, names: Dict[str, str]) -> str:
        who = names.get(r.employee_id or "", r.employee_id or r.team_name or "team")
        return f"{r.date}: {r.category or r.type} for {who}, {r.description}"

    # ------------------------------------------------------------------
    # Summary sections
    # ------------------------------------------------------------------

    @staticmethod
    def _relationships(data: RetrievedData, names: Dict[str, str]) -> str:
        related = data.related
        if related.is_empty():
            return ""
        lines = ["### Relationships"]
        for employee_id, manager in related.managers.items():
            lines.append(f"- {names.get(employee_id, employee_id)} reports to {manager.full_name}")
        for manager_id, reports in related.direct_reports.items():
            lines.append(
                f"- {names.get(manager_id, manager_id)} manages {', '.join(r.full_name for r in reports)}"
            )
        for employee_id, shifts in related.employee_shifts.items():
            lines.append(f"- {names.get(employee_id, employee_id)} has {len(shifts)} shift(s)")
        for employee_id, tasks in related.employee_tasks.items():
            lines.append(f"- {names.get(employee_id, employee_id)} has {len(tasks)} task(s)")
        titles = {j.id: j.title for j in data.jobs}
        for job_id, candidates in related.job_candidates.items():
            lines.append(f"- {titles.get(job_id, job_id)} has {len(candidates)} candidate(s)")
        return "\n".join(lines)

    @staticmethod
    def _statistics(data: RetrievedData) -> str:
        lines = ["### Data Summary"]
        lines.extend(f"- {name}: {count}" for name, count in data.counts().items() if count)
        return "\n".join(lines)
