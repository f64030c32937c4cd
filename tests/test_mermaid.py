import pytest

from ci_gantt.mermaid import (
    MERMAID_FOOTER,
    create_gantt_diagrams,
    escape_name,
    format_elapsed_time,
    format_name,
    format_section,
    format_short_elapsed_time,
    format_step,
    mermaid_header,
    truncate_name,
)
from ci_gantt.models import GanttJob, GanttStep


def gantt_job(index, n_steps=3):
    steps = tuple(
        GanttStep(
            name=f"step {i} (1s)",
            id=f"job{index}-{i}",
            status="",
            position="00:00:00" if i == 0 else f"after job{index}-{i - 1}",
            sec=1,
        )
        for i in range(n_steps)
    )
    return GanttJob(section=f"job {index}", steps=steps)


class TestFormatting:
    @pytest.mark.parametrize(
        "sec,expected",
        [(0, "00:00:00"), (9, "00:00:09"), (70, "00:01:10"), (3661, "01:01:01"), (-5, "00:00:00")],
    )
    def test_elapsed_time(self, sec, expected):
        assert format_elapsed_time(sec) == expected

    @pytest.mark.parametrize(
        "sec,expected",
        [(0, "0s"), (9, "9s"), (60, "1m0s"), (70, "1m10s"), (3661, "1h1m1s"), (-1, "0s")],
    )
    def test_short_elapsed_time(self, sec, expected):
        assert format_short_elapsed_time(sec) == expected

    def test_escape_name(self):
        assert escape_name("a:b;c") == "abc"
        assert escape_name("line\nbreak") == "line break"

    def test_truncate_name(self):
        assert truncate_name("short", 10) == "short"
        assert truncate_name("a" * 81) == "a" * 80 + "..."

    def test_format_name(self):
        assert format_name("Run: tests", 70) == "Run tests (1m10s)"

    def test_format_step_omits_empty_status(self):
        step = GanttStep(name="Build (3s)", id="job0-1", status="", position="after job0-0", sec=3)
        assert format_step(step) == "Build (3s) :job0-1, after job0-0, 3s"
        crit = GanttStep(name="Build (3s)", id="job0-1", status="crit", position="after job0-0", sec=3)
        assert format_step(crit) == "Build (3s) :crit, job0-1, after job0-0, 3s"

    def test_format_section(self):
        text = format_section(gantt_job(0, 2))
        assert text.splitlines() == [
            "section job 0",
            "step 0 (1s) :job0-0, 00:00:00, 1s",
            "step 1 (1s) :job0-1, after job0-0, 1s",
        ]


class TestCreateGanttDiagrams:
    def test_no_jobs_gives_empty_frame(self):
        assert create_gantt_diagrams("CI", []) == [mermaid_header("CI") + MERMAID_FOOTER]

    def test_fits_in_one_document(self):
        docs = create_gantt_diagrams("CI", [gantt_job(0), gantt_job(1)])
        assert len(docs) == 1
        assert docs[0].startswith("\n```mermaid\ngantt\ntitle CI\n")
        assert docs[0].endswith("\n```")
        assert "section job 0\n" in docs[0] and "section job 1\n" in docs[0]

    def test_exact_budget_does_not_split(self):
        jobs = [gantt_job(0), gantt_job(1)]
        whole = create_gantt_diagrams("CI", jobs)[0]
        assert create_gantt_diagrams("CI", jobs, max_chars=len(whole)) == [whole]

    def test_one_char_under_budget_splits(self):
        jobs = [gantt_job(0), gantt_job(1)]
        whole = create_gantt_diagrams("CI", jobs)[0]
        docs = create_gantt_diagrams("CI", jobs, max_chars=len(whole) - 1)
        assert len(docs) == 2
        assert "section job 0" in docs[0] and "section job 1" not in docs[0]
        assert "section job 1" in docs[1]

    def test_documents_respect_budget(self):
        jobs = [gantt_job(i, n_steps=5) for i in range(30)]
        budget = 1200
        docs = create_gantt_diagrams("Big workflow", jobs, max_chars=budget)
        assert len(docs) > 1
        assert all(len(doc) <= budget for doc in docs)
        joined = "".join(docs)
        assert all(f"section job {i}\n" in joined for i in range(30))

    def test_oversized_section_kept_whole(self):
        big = gantt_job(0, n_steps=50)
        docs = create_gantt_diagrams("CI", [big, gantt_job(1)], max_chars=200)
        assert len(docs) == 2
        assert len(docs[0]) > 200
        assert docs[0].count("step ") == 50
