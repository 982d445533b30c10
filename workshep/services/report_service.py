"""
Grading Report
==============
Per-participant overview of the submission grade, the assessments received
and given, and the aggregated grade for assessment. Teachers see every
participant, students only their own row.

Received assessments are marked as discrepant when they lie more than two
standard deviations from the median of the submission's peer grades.
"""
import math
import logging
import statistics

from ..grades import real_grade, real_grading_grade
from . import workshop_service as ws

logger = logging.getLogger(__name__)

SORT_FIELDS = ('lastname', 'firstname', 'submissiontitle', 'submissiongrade', 'gradinggrade')


def find_discrepancies(assessments: list) -> set:
    """Ids of graded, weighted assessments far from the median of their submission."""
    by_submission = {}
    for a in assessments:
        if a.get("grade") is not None and a["weight"] > 0:
            by_submission.setdefault(a["submissionid"], {})[a["id"]] = a["grade"]

    flagged = set()
    for grades in by_submission.values():
        if len(grades) <= 2:
            continue
        stddev = statistics.pstdev(grades.values())
        median = statistics.median(grades.values())
        for assessmentid, grade in grades.items():
            if grade < median - 2 * stddev or grade > median + 2 * stddev:
                flagged.add(assessmentid)
    return flagged


def _sort_key(sortby):
    def key(row):
        value = row.get(sortby)
        if isinstance(value, str):
            value = value.lower()
        # missing values go first, like NULLs in an ascending SQL sort
        return (value is not None, value if value is not None else 0)
    return key


def _sort_rows(rows: list, sortby: str, sorthow: str) -> list:
    rows = sorted(rows, key=lambda r: r["userid"])
    rows.sort(key=_sort_key("firstname"))
    rows.sort(key=_sort_key("lastname"))
    rows.sort(key=_sort_key(sortby), reverse=(sorthow == 'DESC'))
    return rows


def prepare_grading_report(state: dict, userid, sortby: str = 'lastname', sorthow: str = 'ASC',
                           page: int = 0, perpage: int = 10) -> dict:
    """Report data for the given viewer, or an empty dict for strangers."""
    userid = str(userid)
    workshop = state["workshop"]
    canviewall = ws.is_teacher(state, userid)
    if not canviewall and not ws.is_participant(state, userid):
        return {}

    if sortby not in SORT_FIELDS:
        sortby = 'lastname'
    if sorthow not in ('ASC', 'DESC'):
        sorthow = 'ASC'
    try:
        page = max(int(page), 0)
        perpage = max(int(perpage), 1)
    except (TypeError, ValueError):
        page, perpage = 0, 10

    if canviewall:
        participants = ws.get_participants(state)
    else:
        participants = [ws.get_participant(state, userid)]

    rows = []
    for p in participants:
        submission = None
        for s in ws.get_submissions(state, authorid=p["id"]):
            submission = s
        aggregation = state["aggregations"].get(p["id"])
        rows.append({
            "userid": p["id"],
            "firstname": p.get("firstname", ""),
            "lastname": p.get("lastname", ""),
            "submission": submission,
            "submissiontitle": submission["title"] if submission else None,
            "submissiongrade": submission.get("grade") if submission else None,
            "gradinggrade": aggregation["gradinggrade"] if aggregation else None,
        })
    totalcount = len(rows)
    rows = _sort_rows(rows, sortby, sorthow)[page * perpage:(page + 1) * perpage]

    assessments = ws.get_all_assessments(state)
    discrepancies = find_discrepancies(assessments)
    submissions = {s["id"]: s for s in ws.get_submissions(state)}

    def info(a, otherid):
        return {
            "userid": otherid,
            "assessmentid": a["id"],
            "submissionid": a["submissionid"],
            "grade": real_grade(workshop, a.get("grade")),
            "gradinggrade": real_grading_grade(workshop, a.get("gradinggrade")),
            "gradinggradeover": real_grading_grade(workshop, a.get("gradinggradeover")),
            "weight": a["weight"],
        }

    grades = []
    for row in rows:
        submission = row.pop("submission")
        row["submissionid"] = submission["id"] if submission else None
        row["submissiongrade"] = real_grade(workshop, row["submissiongrade"])
        row["submissiongradeover"] = real_grade(workshop, submission.get("gradeover")) if submission else None
        row["submissiongradeoverby"] = submission.get("gradeoverby") if submission else None
        row["submissionpublished"] = submission.get("published") if submission else None
        row["gradinggrade"] = real_grading_grade(workshop, row["gradinggrade"])

        received = []
        if submission:
            for a in sorted(ws.get_assessments_of_submission(state, submission["id"]),
                            key=lambda a: (-a["weight"], a["reviewerid"])):
                item = info(a, a["reviewerid"])
                item["flagged"] = a["id"] in discrepancies
                item["submitterflagged"] = a.get("submitterflagged", ws.FLAG_NONE)
                received.append(item)
        row["reviewedby"] = received

        given = []
        for a in sorted(ws.get_assessments_by_reviewer(state, row["userid"]),
                        key=lambda a: (-a["weight"], submissions[a["submissionid"]]["authorid"])):
            given.append(info(a, submissions[a["submissionid"]]["authorid"]))
        row["reviewerof"] = given
        grades.append(row)

    return {
        "grades": grades,
        "totalcount": totalcount,
        "page": page,
        "perpage": perpage,
        "pages": math.ceil(totalcount / perpage) if totalcount else 0,
        "sortby": sortby,
        "sorthow": sorthow,
        "maxgrade": real_grade(workshop, 100),
        "maxgradinggrade": real_grading_grade(workshop, 100),
    }
