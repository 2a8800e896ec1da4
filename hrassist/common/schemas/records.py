"""
Record Schemas

Closed set of tagged record variants (Employee, Shift, Task, Job, Candidate,
Recognition). Every variant carries a ``kind`` discriminant so downstream
code dispatches on the tag instead of probing attributes.

Source JSON uses camelCase keys; models accept both the camelCase alias and
the snake_case field name.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


# ============================================================================
# Enums
# ============================================================================

class RecordKind(str, Enum):
    """Discriminant tag of a record variant"""
    EMPLOYEE = "employee"
    SHIFT = "shift"
    TASK = "task"
    JOB = "job"
    CANDIDATE = "candidate"
    RECOGNITION = "recognition"


class TaskKind(str, Enum):
    """Which workflow a task belongs to"""
    EMPLOYEE = "employee"
    TALENT = "talent"
    RECOGNITION = "recognition"
    SHIFT = "shift"


class Collection(str, Enum):
    """Collections exposed by the record store"""
    EMPLOYEES = "employees"
    SHIFTS = "shifts"
    EMPLOYEE_TASKS = "employee_tasks"
    TALENT_TASKS = "talent_tasks"
    RECOGNITION_TASKS = "recognition_tasks"
    SHIFT_TASKS = "shift_tasks"
    JOBS = "jobs"
    CANDIDATES = "candidates"
    RECOGNITION = "recognition"


# ============================================================================
# Sub-models
# ============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class ScheduleDay(_CamelModel):
    """One working day inside a shift"""
    day: str
    start_time: str = ""
    end_time: str = ""
    break_time: str = ""


class Salary(_CamelModel):
    """Posted salary band"""
    min: float = 0
    max: float = 0
    currency: str = "USD"
    commission: Optional[str] = None


class InterviewFeedback(_CamelModel):
    """Feedback left by one interviewer"""
    interviewer_id: str
    date: str = ""
    score: float = 0
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendation: str = ""


class OfferDetails(_CamelModel):
    """Offer extended to a candidate"""
    salary: float = 0
    bonus: Optional[float] = None
    start_date: str = ""
    expiration_date: str = ""


# ============================================================================
# Record variants
# ============================================================================

class Employee(_CamelModel):
    """Employee roster entry"""
    kind: Literal["employee"] = "employee"
    id: str
    first_name: str
    last_name: str
    email: str = ""
    phone: str = ""
    department: str = ""
    position: str = ""
    manager: Optional[str] = None
    hire_date: str = ""
    status: str = "active"
    location: str = ""
    work_type: str = ""
    permissions: List[str] = Field(default_factory=list)
    skills: List[str] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Shift(_CamelModel):
    """Scheduled shift block for one employee"""
    kind: Literal["shift"] = "shift"
    id: str
    employee_id: str
    start_date: str
    end_date: str
    schedule: List[ScheduleDay] = Field(default_factory=list)
    type: str = ""
    status: str = ""
    location: str = ""


class Task(_CamelModel):
    """Task from any of the four task workflows"""
    kind: Literal["task"] = "task"
    id: str
    task_kind: TaskKind = TaskKind.EMPLOYEE
    employee_id: Optional[str] = None
    manager_id: Optional[str] = None
    department_id: Optional[str] = None
    candidate_id: Optional[str] = None
    task_type: str = ""
    title: str
    description: str = ""
    status: str = "pending"
    due_date: str = ""
    completed_date: Optional[str] = None
    priority: str = "medium"
    assigned_by: str = ""
    assigned_date: str = ""
    related_items: List[str] = Field(default_factory=list)
    notes: str = ""


class Job(_CamelModel):
    """Job requisition"""
    kind: Literal["job"] = "job"
    id: str
    title: str
    department: str = ""
    location: str = ""
    work_type: str = ""
    posting_date: str = ""
    closing_date: Optional[str] = None
    status: str = "open"
    description: str = ""
    requirements: List[str] = Field(default_factory=list)
    salary: Optional[Salary] = None
    hiring_manager: str = ""
    application_count: int = 0
    interviews: int = 0
    priority: str = "medium"
    close_reason: Optional[str] = None


class Candidate(_CamelModel):
    """Applicant for a job"""
    kind: Literal["candidate"] = "candidate"
    id: str
    first_name: str
    last_name: str
    email: str = ""
    phone: str = ""
    job_id: str = ""
    stage: str = "application"
    application_date: str = ""
    last_updated: str = ""
    status: str = "active"
    resume: str = ""
    skills: List[str] = Field(default_factory=list)
    experience: Union[str, float] = ""
    education: str = ""
    interview_feedback: List[InterviewFeedback] = Field(default_factory=list)
    offer_details: Optional[OfferDetails] = None
    assessment_results: Optional[Dict[str, Any]] = None
    notes: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Recognition(_CamelModel):
    """Recognition given to an employee or a team"""
    kind: Literal["recognition"] = "recognition"
    id: str
    type: str = "individual"
    employee_id: Optional[str] = None
    team_id: Optional[str] = None
    team_name: Optional[str] = None
    members: List[str] = Field(default_factory=list)
    recognized_by: Optional[str] = None
    date: str = ""
    description: str = ""
    category: str = ""
    visibility: str = "public"
    points: Optional[int] = None
    tags: List[str] = Field(default_factory=list)

    def involves(self, employee_id: str) -> bool:
        """True if the employee is the recipient or a team member"""
        return self.employee_id == employee_id or employee_id in self.members


Record = Annotated[
    Union[Employee, Shift, Task, Job, Candidate, Recognition],
    Field(discriminator="kind"),
]

RECORD_ADAPTER = TypeAdapter(Record)


# ============================================================================
# Collection metadata
# ============================================================================

COLLECTION_MODELS = {
    Collection.EMPLOYEES: Employee,
    Collection.SHIFTS: Shift,
    Collection.EMPLOYEE_TASKS: Task,
    Collection.TALENT_TASKS: Task,
    Collection.RECOGNITION_TASKS: Task,
    Collection.SHIFT_TASKS: Task,
    Collection.JOBS: Job,
    Collection.CANDIDATES: Candidate,
    Collection.RECOGNITION: Recognition,
}

COLLECTION_TASK_KINDS = {
    Collection.EMPLOYEE_TASKS: TaskKind.EMPLOYEE,
    Collection.TALENT_TASKS: TaskKind.TALENT,
    Collection.RECOGNITION_TASKS: TaskKind.RECOGNITION,
    Collection.SHIFT_TASKS: TaskKind.SHIFT,
}

TASK_COLLECTIONS = {kind: collection for collection, kind in COLLECTION_TASK_KINDS.items()}


def parse_record(collection: Collection, row: Dict[str, Any]):
    """
    Validate one raw row from a collection into its tagged record.

    Task collections stamp ``task_kind`` from the collection they came from.

    Raises:
        pydantic.ValidationError: if the row does not fit the model
    """
    collection = Collection(collection)
    model = COLLECTION_MODELS[collection]
    if collection in COLLECTION_TASK_KINDS:
        row = {**row, "taskKind": COLLECTION_TASK_KINDS[collection].value}
        row.pop("task_kind", None)
    return model.model_validate(row)


def record_from_dict(data: Dict[str, Any]):
    """Rebuild a record from a dict that carries its ``kind`` tag"""
    return RECORD_ADAPTER.validate_python(data)
