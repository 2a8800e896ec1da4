"""Tests for DataFormatter sections, prioritization and compression."""

import pytest


@pytest.fixture
def records(collections):
    from hrassist.common.schemas.records import Collection, parse_record

    def parse(name):
        return [parse_record(Collection(name), row) for row in collections[name]]
    return parse


@pytest.fixture
def formatter():
    from hrassist.retriever.formatter import DataFormatter
    return DataFormatter()


class TestFormat:
    def test_empty_data(self, formatter):
        from hrassist.retriever.formatter import NO_DATA_TEXT
        from hrassist.retriever.orchestrator import RetrievedData
        assert formatter.format(RetrievedData()) == NO_DATA_TEXT
        assert formatter.format(None) == NO_DATA_TEXT

    def test_detailed_view_for_small_sets(self, formatter, records):
        from hrassist.retriever.orchestrator import RetrievedData
        data = RetrievedData()
        data.add(records("jobs")[:1])

        text = formatter.format(data)

        assert "### Jobs" in text
        assert "**Senior Software Developer** (J001)" in text
        assert "Salary: 140,000-170,000 USD" in text
        assert "### Data Summary" in text
        assert "- jobs: 1" in text

    def test_compact_view_with_status_counts(self, formatter, records):
        from hrassist.retriever.orchestrator import RetrievedData
        data = RetrievedData()
        data.add(records("employees"))

        text = formatter.format(data)

        assert "4 employees found." in text
        assert "By status: active (4)" in text
        assert "- Morgan Ellis (E001), Director of Engineering, Engineering" in text

    def test_tasks_split_by_workflow(self, formatter, records):
        from hrassist.retriever.orchestrator import RetrievedData
        data = RetrievedData()
        data.add(records("employee_tasks") + records("talent_tasks") + records("shift_tasks"))

        text = formatter.format(data)

        assert "### Employee Tasks" in text
        assert "### Talent Tasks" in text
        assert "### Shift Tasks" in text
        assert "### Recognition Tasks" not in text
        assert text.index("Finish onboarding checklist") < text.index("Quarterly review prep")

    def test_overflow_marker(self, formatter):
        from hrassist.common.schemas.records import Job
        from hrassist.retriever.orchestrator import RetrievedData
        data = RetrievedData()
        data.add([Job(id=f"J{i:03d}", title=f"Role {i}", posting_date=f"2025-01-{i:02d}") for i in range(1, 13)])

        text = formatter.format(data)

        assert "12 jobs found." in text
        assert "...and 2 more" in text
        assert text.index("Role 12") < text.index("Role 11")

    def test_relationships_section(self, formatter, records):
        from hrassist.retriever.orchestrator import RetrievalOrchestrator, RetrievedData
        data = RetrievedData()
        data.add(records("employees")[:2])
        data.add(records("shifts"))
        RetrievalOrchestrator._index_relationships(data)

        text = formatter.format(data)

        assert "### Relationships" in text
        assert "- Jordan Williams reports to Morgan Ellis" in text
        assert "- Morgan Ellis manages Jordan Williams" in text
        assert "- Jordan Williams has 2 shift(s)" in text


class TestCompression:
    def test_levels_shrink_output(self, formatter, records):
        from hrassist.retriever.formatter import CompressionLevel
        from hrassist.retriever.orchestrator import RetrievalOrchestrator, RetrievedData
        data = RetrievedData()
        data.add(records("employees") + records("jobs") + records("candidates"))
        RetrievalOrchestrator._index_relationships(data)

        low = formatter.format(data, CompressionLevel.LOW)
        medium = formatter.format(data, CompressionLevel.MEDIUM)
        high = formatter.format(data, CompressionLevel.HIGH)

        assert len(high) < len(medium) < len(low)
        assert "Data Summary" not in medium
        assert "Relationships" not in high
        assert "**" not in high

    def test_high_compression_limits_items(self, formatter):
        from hrassist.common.schemas.records import Job
        from hrassist.retriever.formatter import CompressionLevel
        from hrassist.retriever.orchestrator import RetrievedData
        data = RetrievedData()
        data.add([Job(id=f"J{i:03d}", title=f"Role {i}") for i in range(1, 8)])

        text = formatter.format(data, CompressionLevel.HIGH)

        assert "...and 2 more" in text
        assert not text.startswith("#")

    def test_compress_text(self):
        from hrassist.retriever.formatter import compress_text
        text = "## Title\n\n\n\n**Bold**  words (aside)  \nnext"
        assert compress_text(text, "low") == "## Title\n\n**Bold**  words (aside)\nnext"
        assert compress_text(text, "medium") == "## Title\n**Bold** words (aside)\nnext"
        assert compress_text(text, "high") == "Title\nBold words\nnext"


class TestPrioritization:
    def test_tasks_by_priority_then_due_date(self):
        from hrassist.common.schemas.records import Task
        from hrassist.retriever.formatter import prioritize_tasks
        tasks = [
            Task(id="a", title="a", priority="low", due_date="2025-01-01"),
            Task(id="b", title="b", priority="high", due_date="2025-03-01"),
            Task(id="c", title="c", priority="high", due_date="2025-02-01"),
            Task(id="d", title="d", priority="high"),
        ]
        assert [t.id for t in prioritize_tasks(tasks)] == ["c", "b", "d", "a"]

    def test_candidates_by_stage_then_newest(self, records):
        from hrassist.retriever.formatter import prioritize_candidates
        ordered = prioritize_candidates(records("candidates"))
        assert [c.id for c in ordered] == ["C003", "C001", "C002"]

    def test_shifts_by_start_date(self, records):
        from hrassist.retriever.formatter import prioritize_shifts
        assert [s.id for s in prioritize_shifts(records("shifts"))] == ["S001", "S002", "S003"]
