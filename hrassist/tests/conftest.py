"""
Shared fixtures: a small HR dataset and the data layer built over it.

Shift dates are computed from today so "this week" queries always hit.
"""

from datetime import date, timedelta

import pytest


def week_start(today: date) -> date:
    """Sunday on or before ``today``"""
    return today - timedelta(days=(today.weekday() + 1) % 7)


class FakeClock:
    """Manually advanced monotonic clock"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_collections(today: date = None) -> dict:
    today = today or date.today()
    sunday = week_start(today)

    def day(offset: int) -> str:
        return (sunday + timedelta(days=offset)).isoformat()

    return {
        "employees": [
            {
                "id": "E001", "firstName": "Morgan", "lastName": "Ellis",
                "email": "morgan.ellis@example.com", "department": "Engineering",
                "position": "Director of Engineering", "manager": None,
                "hireDate": "2018-03-01", "location": "Boston", "workType": "hybrid",
            },
            {
                "id": "E002", "firstName": "Jordan", "lastName": "Williams",
                "email": "jordan.williams@example.com", "department": "Engineering",
                "position": "Software Engineer", "manager": "E001",
                "hireDate": "2021-06-14", "location": "Boston", "workType": "in_office",
                "skills": ["python", "postgres"],
            },
            {
                "id": "E003", "firstName": "Priya", "lastName": "Patel",
                "email": "priya.patel@example.com", "department": "Recruiting",
                "position": "Recruiting Manager", "manager": None,
                "hireDate": "2019-01-07", "location": "Remote", "workType": "remote",
            },
            {
                "id": "E004", "firstName": "Sam", "lastName": "Carter",
                "email": "sam.carter@example.com", "department": "Support",
                "position": "Support Specialist", "manager": "E001",
                "hireDate": "2022-09-19", "location": "Chicago", "workType": "in_office",
            },
        ],
        "shifts": [
            {
                "id": "S001", "employeeId": "E002", "startDate": day(1), "endDate": day(5),
                "type": "regular", "status": "scheduled",
                "schedule": [{"day": "Monday", "startTime": "09:00", "endTime": "17:00"}],
            },
            {
                "id": "S002", "employeeId": "E004", "startDate": day(1), "endDate": day(3),
                "type": "regular", "status": "scheduled",
            },
            {
                "id": "S003", "employeeId": "E002", "startDate": day(8), "endDate": day(12),
                "type": "regular", "status": "scheduled",
            },
        ],
        "employee_tasks": [
            {
                "id": "T001", "employeeId": "E002", "title": "Finish onboarding checklist",
                "status": "pending", "priority": "high", "dueDate": day(3),
            },
            {
                "id": "T002", "employeeId": "E004", "title": "Update support runbook",
                "status": "in_progress", "priority": "low", "dueDate": day(10),
            },
            {
                "id": "T003", "employeeId": "E002", "title": "Quarterly review prep",
                "status": "completed", "priority": "medium", "dueDate": day(-3),
            },
        ],
        "talent_tasks": [
            {
                "id": "TT001", "managerId": "E003", "candidateId": "C001",
                "title": "Collect interview feedback", "status": "pending", "priority": "high",
            },
        ],
        "recognition_tasks": [
            {"id": "RT001", "managerId": "E001", "title": "Nominate quarterly award", "status": "pending"},
        ],
        "shift_tasks": [
            {"id": "ST001", "managerId": "E001", "title": "Cover Friday support shift", "status": "pending"},
        ],
        "jobs": [
            {
                "id": "J001", "title": "Senior Software Developer", "department": "Engineering",
                "location": "Boston", "status": "open", "postingDate": "2025-09-01",
                "hiringManager": "E001", "applicationCount": 2, "interviews": 1,
                "salary": {"min": 140000, "max": 170000, "currency": "USD"},
            },
            {
                "id": "J002", "title": "Product Manager", "department": "Product",
                "location": "Remote", "status": "open", "postingDate": "2025-09-15",
                "hiringManager": "E003", "applicationCount": 1,
            },
            {
                "id": "J003", "title": "Data Analyst", "department": "Finance",
                "status": "closed", "postingDate": "2025-06-01", "hiringManager": "E003",
            },
        ],
        "candidates": [
            {
                "id": "C001", "firstName": "Alex", "lastName": "Rivera", "jobId": "J001",
                "stage": "interview", "applicationDate": "2025-09-10",
                "interviewFeedback": [{"interviewerId": "E002", "score": 4, "recommendation": "hire"}],
            },
            {
                "id": "C002", "firstName": "Taylor", "lastName": "Brooks", "jobId": "J001",
                "stage": "application", "applicationDate": "2025-09-12",
            },
            {
                "id": "C003", "firstName": "Casey", "lastName": "Nguyen", "jobId": "J002",
                "stage": "offer", "applicationDate": "2025-09-20",
                "offerDetails": {"salary": 150000, "startDate": "2025-11-03"},
            },
        ],
        "recognition": [
            {
                "id": "R001", "employeeId": "E002", "recognizedBy": "E001", "date": "2025-09-30",
                "description": "Shipped the payroll migration", "category": "impact",
            },
            {
                "id": "R002", "type": "team", "teamName": "Support", "members": ["E004"],
                "date": "2025-08-12", "description": "Zero backlog week", "category": "teamwork",
            },
        ],
    }


@pytest.fixture
def collections():
    return build_collections()


@pytest.fixture
def store(collections):
    from hrassist.data.record_store import InMemoryRecordStore
    return InMemoryRecordStore(collections)


@pytest.fixture
def cache():
    from hrassist.data.cache import TieredCache
    return TieredCache()


@pytest.fixture
def service(store, cache):
    from hrassist.common.config import CoalescerConfig
    from hrassist.data.record_service import CachedRecordService
    return CachedRecordService(store, cache, CoalescerConfig(window_ms=5))


@pytest.fixture
def indexed_analyzer(service, collections):
    """Analyzer with name indexes built directly from the fixture rows"""
    from hrassist.common.schemas.records import Collection, parse_record
    from hrassist.retriever.query_analyzer import QueryAnalyzer

    def parse(name):
        return [parse_record(Collection(name), row) for row in collections[name]]

    analyzer = QueryAnalyzer(service)
    analyzer.index_records(parse("employees"), parse("candidates"), parse("jobs"))
    return analyzer


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def current_week():
    """(Sunday, Saturday) of the current week"""
    sunday = week_start(date.today())
    return sunday, sunday + timedelta(days=6)
