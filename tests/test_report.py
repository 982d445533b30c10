"""
Test: grading report and discrepancy detection.
"""
import pytest

from workshep.services import workshop_service as ws
from workshep.services.report_service import find_discrepancies, prepare_grading_report


def graded(aid, grade, submissionid=1, weight=1):
    return {"id": aid, "submissionid": submissionid, "grade": grade, "weight": weight}


class TestDiscrepancies:
    def test_outlier_flagged(self):
        assessments = [graded(i, 50) for i in range(1, 5)] + [graded(5, 100)]
        assert find_discrepancies(assessments) == {5}

    def test_two_grades_never_flagged(self):
        assert find_discrepancies([graded(1, 0), graded(2, 100)]) == set()

    def test_ignores_ungraded_and_unweighted(self):
        assessments = [graded(1, 50), graded(2, 50), graded(3, None), graded(4, 100, weight=0)]
        assert find_discrepancies(assessments) == set()

    def test_per_submission(self):
        assessments = [graded(i, 50) for i in range(1, 5)] + [graded(5, 100)]
        assessments += [graded(10 + i, 100, submissionid=2) for i in range(3)]
        assert find_discrepancies(assessments) == {5}


@pytest.fixture
def reviewed(submitted, allocate):
    """s2 and s3 reviewed s1 with 50 and 100 percent."""
    first = allocate(submitted, "s1", "s2")
    second = allocate(submitted, "s1", "s3")
    ws.set_peer_grade(submitted, first, 50)
    ws.set_peer_grade(submitted, second, 100)
    ws.get_submission_by_author(submitted, "s1")["grade"] = 75.0
    return submitted


class TestGradingReport:
    def test_teacher_sees_everybody(self, reviewed):
        report = prepare_grading_report(reviewed, "t1")
        assert report["totalcount"] == 4
        assert [row["lastname"] for row in report["grades"]] == ["Adams", "Brown", "Clark", "Davis"]
        assert report["maxgrade"] == 80
        assert report["maxgradinggrade"] == 20

    def test_student_sees_own_row(self, reviewed):
        report = prepare_grading_report(reviewed, "s2")
        assert [row["userid"] for row in report["grades"]] == ["s2"]
        assert report["grades"][0]["reviewerof"][0]["userid"] == "s1"

    def test_stranger(self, reviewed):
        assert prepare_grading_report(reviewed, "nobody") == {}

    def test_row_contents(self, reviewed):
        row = prepare_grading_report(reviewed, "t1")["grades"][0]
        assert row["userid"] == "s1"
        assert row["submissiontitle"] == "Essay by Ann"
        assert row["submissiongrade"] == 60
        assert row["gradinggrade"] is None
        assert [r["userid"] for r in row["reviewedby"]] == ["s2", "s3"]
        assert [r["grade"] for r in row["reviewedby"]] == [40, 80]
        assert not any(r["flagged"] for r in row["reviewedby"])

    def test_sort_descending(self, reviewed):
        report = prepare_grading_report(reviewed, "t1", sortby="firstname", sorthow="DESC")
        assert [row["firstname"] for row in report["grades"]] == ["Dee", "Cid", "Bob", "Ann"]

    def test_sort_missing_values_first(self, reviewed):
        report = prepare_grading_report(reviewed, "t1", sortby="submissiongrade")
        assert report["grades"][-1]["userid"] == "s1"

    def test_invalid_sort_falls_back(self, reviewed):
        report = prepare_grading_report(reviewed, "t1", sortby="password", sorthow="sideways")
        assert report["sortby"] == "lastname"
        assert report["sorthow"] == "ASC"

    def test_pagination(self, reviewed):
        report = prepare_grading_report(reviewed, "t1", page=1, perpage=3)
        assert report["pages"] == 2
        assert [row["userid"] for row in report["grades"]] == ["s4"]
