"""
Test: example submissions and calibration scores computed from them.
"""
import random
import pytest

from workshep.calibration import CALIBRATION_METHODS, get_calibration
from workshep.calibration.examples import GRADING_CURVES, ExamplesCalibration, apply_curve
from workshep.errors import PermissionDenied, ValidationError
from workshep.services import examples_service
from workshep.services import workshop_service as ws

SINGLE_CRITERION = {"dimensions": [{"description": "Overall", "grade": 10, "weight": 1}]}


class LowestFirst:
    """Always draws the first candidate and keeps the order."""

    def choice(self, seq):
        return seq[0]

    def shuffle(self, seq):
        pass


@pytest.fixture
def examples(workshop, assess):
    """Two examples with reference grades 8 and 4."""
    ws.save_form(workshop, SINGLE_CRITERION)
    ws.update_workshop(workshop, {"useexamples": True, "usecalibration": True})
    ids = []
    for title, grade in (("Good example", 8), ("Weak example", 4)):
        example = ws.create_submission(workshop, "t1", title, example=True)
        reference = examples_service.start_example_assessment(workshop, example["id"], "t1")
        assess(workshop, reference["id"], "t1", grade)
        ids.append(example["id"])
    workshop["examples"] = ids
    return workshop


@pytest.fixture
def practise(assess):
    def _practise(state, userid, example_id, grade):
        assessment = examples_service.start_example_assessment(state, example_id, userid)
        return assess(state, assessment["id"], userid, grade)
    return _practise


class TestExamples:
    def test_reference_weight(self, examples):
        reference = examples_service.get_reference_assessment(examples, examples["examples"][0])
        assert reference["weight"] == 1
        assert reference["grade"] == 80.0

    def test_manager_list_sorted_by_grade(self, examples):
        listed = examples_service.get_examples_for_manager(examples)
        assert [e["title"] for e in listed] == ["Weak example", "Good example"]

    def test_practice_weight_zero(self, examples):
        assessment = examples_service.start_example_assessment(examples, examples["examples"][0], "s1")
        assert assessment["weight"] == 0

    def test_start_is_idempotent(self, examples):
        first = examples_service.start_example_assessment(examples, examples["examples"][0], "s1")
        again = examples_service.start_example_assessment(examples, examples["examples"][0], "s1")
        assert first["id"] == again["id"]

    def test_strangers_can_not_practise(self, examples):
        with pytest.raises(PermissionDenied):
            examples_service.start_example_assessment(examples, examples["examples"][0], "nobody")

    def test_not_an_example(self, examples):
        ws.switch_phase(examples, "submission")
        submission = ws.create_submission(examples, "s1", "Real work")
        with pytest.raises(ValidationError):
            examples_service.start_example_assessment(examples, submission["id"], "s1")

    def test_reviewer_selection_is_remembered(self, examples):
        ws.update_workshop(examples, {"numexamples": 1})
        rng = random.Random(3)
        first = examples_service.get_examples_for_reviewer(examples, "s1", rng=rng)
        again = examples_service.get_examples_for_reviewer(examples, "s1", rng=rng)
        assert len(first) == 1
        assert first == again

    def test_slices(self):
        slices = examples_service.slice_example_submissions(list(range(10)), 4)
        assert [len(s) for s in slices] == [3, 2, 3, 2]

    def test_top_pick_skips_next_bottom(self):
        # a lone example is the top of its slice
        slices = [[{"id": "a", "grade": 10}],
                  [{"id": "b", "grade": 30}, {"id": "c", "grade": 40}]]
        assert examples_service._pick_new_examples(slices, set(), LowestFirst()) == ["a", "c"]

    def test_lower_pick_keeps_next_bottom(self):
        slices = [[{"id": "a", "grade": 10}, {"id": "b", "grade": 20}],
                  [{"id": "c", "grade": 30}, {"id": "d", "grade": 40}]]
        assert examples_service._pick_new_examples(slices, set(), LowestFirst()) == ["a", "c"]

    def test_top_pick_decided_by_whole_slice(self):
        # the bottom of the middle slice is filtered out, c is still not its top
        slices = [[{"id": "a", "grade": 10}],
                  [{"id": "b", "grade": 20}, {"id": "c", "grade": 30}, {"id": "d", "grade": 40}],
                  [{"id": "e", "grade": 50}, {"id": "f", "grade": 60}]]
        assert examples_service._pick_new_examples(slices, set(), LowestFirst()) == ["a", "c", "e"]


class TestCurves:
    def test_linear(self):
        assert apply_curve(0.9, GRADING_CURVES[5]) == pytest.approx(0.9)

    def test_strict(self):
        assert apply_curve(0.9, GRADING_CURVES[7]) == pytest.approx(0.99)

    def test_lax(self):
        assert apply_curve(0.81, GRADING_CURVES[3]) == pytest.approx(0.6561)


class TestCalibrationScores:
    def test_registry(self, examples):
        assert set(CALIBRATION_METHODS) == {"examples"}
        assert isinstance(get_calibration(examples), ExamplesCalibration)

    def test_perfect_reviewer(self, examples, practise):
        practise(examples, "s1", examples["examples"][0], 8)
        practise(examples, "s1", examples["examples"][1], 4)
        scores = get_calibration(examples).calculate_calibration_scores({})
        assert scores["s1"] == 100.0

    def test_imprecise_reviewer(self, examples, practise):
        practise(examples, "s2", examples["examples"][0], 6)
        practise(examples, "s2", examples["examples"][1], 4)
        scores = get_calibration(examples).calculate_calibration_scores({"comparison": 5, "consistency": 5})
        # accuracy 0.9, consistency multiplier 0.666 * 0.9 - 0.666 + 1
        assert scores["s2"] == pytest.approx(84.006)

    def test_too_few_examples(self, examples, practise):
        practise(examples, "s3", examples["examples"][0], 8)
        scores = get_calibration(examples).calculate_calibration_scores({})
        assert scores["s3"] == 0

    def test_scores_stored(self, examples, practise):
        practise(examples, "s1", examples["examples"][0], 8)
        practise(examples, "s1", examples["examples"][1], 4)
        method = get_calibration(examples)
        method.calculate_calibration_scores({})
        assert method.get_calibration_score_for_user("s1") == 100.0
        assert examples["calibration_settings"]["examples"] == {"comparison": 5, "consistency": 5}

    def test_invalid_settings(self, examples):
        with pytest.raises(ValidationError):
            get_calibration(examples).calculate_calibration_scores({"comparison": 0})


class TestBreakdown:
    def test_empty(self, examples):
        assert get_calibration(examples).prepare_grade_breakdown("s4") == {"empty": True}

    def test_values(self, examples, practise):
        practise(examples, "s2", examples["examples"][0], 6)
        practise(examples, "s2", examples["examples"][1], 4)
        breakdown = get_calibration(examples).prepare_grade_breakdown("s2")
        assert breakdown["empty"] is False
        assert len(breakdown["table"]) == 2
        assert breakdown["raw_average"] == pytest.approx(10)
        assert breakdown["scaled_average"] == pytest.approx(90)
        assert breakdown["mad"] == pytest.approx(10)
        assert breakdown["consistency_multiplier"] == pytest.approx(0.9334)
        assert breakdown["final_score"] == pytest.approx(84.006)

    def test_final_score_matches_stored_score(self, examples, practise):
        # within one percent of the references counts as a perfect match
        practise(examples, "s2", examples["examples"][0], 7.95)
        practise(examples, "s2", examples["examples"][1], 4)
        method = get_calibration(examples)
        method.calculate_calibration_scores({})
        breakdown = method.prepare_grade_breakdown("s2")
        assert breakdown["raw_average"] == pytest.approx(0.25)
        assert breakdown["consistency_multiplier"] == pytest.approx(1)
        assert breakdown["final_score"] == pytest.approx(100)
        assert breakdown["final_score"] == pytest.approx(method.get_calibration_score_for_user("s2"))
