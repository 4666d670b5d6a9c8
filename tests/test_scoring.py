import pytest

from learning_core.model.enums import QuestionType
from learning_core.services.scoring import (
    AnswerKey,
    QuestionKey,
    is_passing,
    normalize_answers,
    percent_of,
    rescore,
    score,
)

MC = QuestionKey(QuestionType.MULTIPLE_CHOICE, correct_options=frozenset({"A", "C"}))
MATCHING = QuestionKey(QuestionType.MATCHING, correct_options=frozenset({"1-b", "2-a"}))
TF = QuestionKey(QuestionType.TRUE_FALSE, correct_options=frozenset({"True"}))
SHORT = QuestionKey(QuestionType.SHORT_ANSWER, reference_answer="Paris")


def _single(key: QuestionKey, answer) -> bool:
    result = score(AnswerKey(questions=(key,)), {"0": answer})
    return result.per_question[0].correct


@pytest.mark.parametrize(
    "answer, expected",
    [
        (["A", "C"], True),
        (["C", "A"], True),
        (["A"], False),
        (["A", "B", "C"], False),
        ([], False),
        (None, False),
    ],
)
def test_multiple_choice_is_all_or_nothing_set_equality(answer, expected):
    assert _single(MC, answer) is expected


def test_matching_uses_the_same_set_rule():
    assert _single(MATCHING, ["2-a", "1-b"]) is True
    assert _single(MATCHING, ["1-b"]) is False


@pytest.mark.parametrize(
    "answer, expected",
    [
        ("True", True),
        ("true", True),
        (True, True),
        (["True"], True),
        ("False", False),
        (False, False),
        (None, False),
        (["True", "False"], False),
    ],
)
def test_true_false_needs_the_single_correct_value(answer, expected):
    assert _single(TF, answer) is expected


def test_short_answer_ignores_case_and_surrounding_whitespace():
    assert _single(SHORT, "  paris ") is True
    assert _single(SHORT, "PARIS") is True
    assert _single(SHORT, "Lyon") is False
    assert _single(SHORT, "") is False


def test_essay_and_fill_in_blank_use_exact_normalized_match():
    essay = QuestionKey(QuestionType.ESSAY, reference_answer="Because it is interpreted")
    blank = QuestionKey(QuestionType.FILL_IN_BLANK, reference_answer="def")
    assert _single(essay, "because it is interpreted") is True
    assert _single(essay, "because it is compiled") is False
    assert _single(blank, " DEF") is True


def test_four_of_five_correct_is_exactly_passing():
    key = AnswerKey(questions=(SHORT,) * 5)
    answers = {"0": "Paris", "1": "paris", "2": "PARIS", "3": "Paris ", "4": "Rome"}

    result = score(key, answers)

    assert result.percent == 80
    assert result.passed is True
    assert result.correct_count == 4
    assert result.total_count == 5


def test_unanswered_questions_stay_in_the_denominator():
    key = AnswerKey(questions=(MC, TF, SHORT))

    result = score(key, {"2": "Paris"})

    assert len(result.per_question) == 3
    assert result.percent == 33
    assert result.passed is False
    assert [q.answered for q in result.per_question] == [False, False, True]


@pytest.mark.parametrize(
    "answers",
    [
        None,
        "A",
        42,
        {"0": {"nested": True}, "1": 3.5, "2": ["Paris"]},
        {"zero": "A", "-1": "B"},
        [None, None, None],
    ],
)
def test_malformed_answers_score_incorrect_without_raising(answers):
    key = AnswerKey(questions=(MC, TF, SHORT))

    result = score(key, answers)

    assert 0 <= result.percent <= 100
    assert len(result.per_question) == 3
    assert result.correct_count <= 1


def test_task_without_questions_scores_zero_and_never_passes():
    result = score(AnswerKey(questions=()), {"0": "anything"})

    assert result.percent == 0
    assert result.passed is False
    assert result.per_question == ()


def test_percent_rounds_halves_up():
    assert percent_of(1, 8) == 13
    assert percent_of(2, 3) == 67
    assert percent_of(1, 3) == 33
    assert percent_of(0, 0) == 0


def test_passing_threshold_is_inclusive():
    assert is_passing(80) is True
    assert is_passing(79) is False


def test_list_answers_are_indexed_by_position():
    assert normalize_answers(["A", "B"]) == {0: "A", 1: "B"}
    assert normalize_answers({"0": "A", 2: "B", "x": "C", " 3 ": "D"}) == {0: "A", 2: "B", 3: "D"}


def test_points_are_reported_per_question():
    weighted = QuestionKey(QuestionType.SHORT_ANSWER, reference_answer="Paris", points=3.0)
    result = score(AnswerKey(questions=(weighted, MC)), {"0": "Paris", "1": ["A"]})

    assert result.earned_points == 3.0
    assert result.total_points == 4.0
    # Percent is by question count, not by points
    assert result.percent == 50


def test_rescore_uses_the_stored_answer_key():
    key = AnswerKey(questions=(MC, TF, SHORT), task_id="task-1")
    answers = {"0": ["A", "C"], "1": "True", "2": "Lyon"}

    stored = key.to_dict()
    result = rescore(stored, answers)

    assert stored["questions"][0]["correct_options"] == ["A", "C"]
    assert result.percent == score(key, answers).percent == 67


def test_results_carry_the_expected_answer_and_explanation():
    explained = QuestionKey(QuestionType.SHORT_ANSWER, reference_answer="Paris", explanation="Capital since 508")
    key = AnswerKey(questions=(MC, TF, explained))

    result = rescore(key.to_dict(), {"0": ["A"], "1": "False", "2": "Lyon"})

    assert [q.correct_answer for q in result.per_question] == [["A", "C"], ["True"], "Paris"]
    assert [q.explanation for q in result.per_question] == [None, None, "Capital since 508"]


def test_answer_key_without_explanations_still_loads():
    stored = {"questions": [{"question_type": "short_answer", "reference_answer": "Paris", "points": 1.0}]}

    result = rescore(stored, ["paris"])

    assert result.per_question[0].correct is True
    assert result.per_question[0].explanation is None
