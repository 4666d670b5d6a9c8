"""
Scoring Engine - pure grading of a learner's answers against a task's answer key.

Nothing in this module performs I/O or raises on malformed answers: anything
that cannot be interpreted is simply scored as incorrect, so a submission
always produces a score.

Correctness rules per question type:
    - multiple_choice / matching: the submitted set of option texts must equal
      the set of options flagged correct (all-or-nothing, order-independent)
    - true_false: the single submitted value must match the correct option
    - short_answer / essay / fill_in_blank: trimmed, case-insensitive equality
      with the reference answer
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping, Optional, Union

from learning_core.model.enums import QuestionType

PASSING_SCORE = 80


@dataclass(frozen=True)
class QuestionKey:
    """Correct-answer data of one question, detached from the database row."""
    question_type: QuestionType
    correct_options: frozenset[str] = frozenset()
    reference_answer: Optional[str] = None
    points: float = 1.0
    question_id: Optional[str] = None
    explanation: Optional[str] = None

    @classmethod
    def from_question(cls, question) -> "QuestionKey":
        question_type = QuestionType(question.question_type)
        correct = frozenset(
            option.text for option in question.options if option.is_correct
        ) if question_type.is_choice() else frozenset()
        return cls(
            question_type=question_type,
            correct_options=correct,
            reference_answer=question.correct_answer if question_type.is_free_text() else None,
            points=float(question.point if question.point is not None else 1.0),
            question_id=str(question.id) if question.id is not None else None,
            explanation=question.explanation,
        )

    def to_dict(self) -> dict:
        return {
            "question_id": self.question_id,
            "question_type": self.question_type.value,
            "correct_options": sorted(self.correct_options),
            "reference_answer": self.reference_answer,
            "points": self.points,
            "explanation": self.explanation,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QuestionKey":
        return cls(
            question_type=QuestionType(data["question_type"]),
            correct_options=frozenset(data.get("correct_options") or ()),
            reference_answer=data.get("reference_answer"),
            points=float(data.get("points", 1.0)),
            question_id=data.get("question_id"),
            explanation=data.get("explanation"),
        )

    def expected_answer(self) -> Union[list[str], str, None]:
        """What a correct answer looks like, for the post-submit review."""
        if self.question_type.is_choice():
            return sorted(self.correct_options)
        return self.reference_answer


@dataclass(frozen=True)
class AnswerKey:
    """Ordered question keys of a task; question index i answers questions[i]."""
    questions: tuple[QuestionKey, ...]
    task_id: Optional[str] = None

    @classmethod
    def from_task(cls, task) -> "AnswerKey":
        live_questions = [q for q in task.questions if not q.is_deleted]
        live_questions.sort(key=lambda q: q.order_index or 0)
        return cls(
            questions=tuple(QuestionKey.from_question(q) for q in live_questions),
            task_id=str(task.id) if task.id is not None else None,
        )

    def to_dict(self) -> dict:
        return {
            "task_id": self.task_id,
            "questions": [question.to_dict() for question in self.questions],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AnswerKey":
        return cls(
            questions=tuple(QuestionKey.from_dict(q) for q in data.get("questions", [])),
            task_id=data.get("task_id"),
        )


@dataclass(frozen=True)
class QuestionResult:
    index: int
    question_type: QuestionType
    correct: bool
    answered: bool
    points_awarded: float
    points_possible: float
    question_id: Optional[str] = None
    correct_answer: Union[list[str], str, None] = None
    explanation: Optional[str] = None


@dataclass(frozen=True)
class ScoreResult:
    per_question: tuple[QuestionResult, ...] = field(default_factory=tuple)
    percent: int = 0
    passed: bool = False
    correct_count: int = 0
    total_count: int = 0
    earned_points: float = 0.0
    total_points: float = 0.0


def is_passing(percent: int) -> bool:
    """Threshold is inclusive: exactly 80 passes."""
    return percent >= PASSING_SCORE


def percent_of(correct: int, total: int) -> int:
    """round(100 * correct / total) with halves rounded up; 0 when there is nothing to grade."""
    if total <= 0:
        return 0
    value = (Decimal(100) * correct / Decimal(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(value)


def normalize_answers(answers: Any) -> dict[int, Any]:
    """
    Index answers by question position.

    Accepts a mapping keyed by int or numeric string, or a plain list where the
    list position is the question index. Anything else yields no answers.
    """
    if isinstance(answers, Mapping):
        indexed = {}
        for key, value in answers.items():
            if isinstance(key, bool):
                continue
            if isinstance(key, int):
                indexed[key] = value
            elif isinstance(key, str) and key.strip().isdigit():
                indexed[int(key.strip())] = value
        return indexed
    if isinstance(answers, (list, tuple)):
        return dict(enumerate(answers))
    return {}


def _normalize_text(value: str) -> str:
    return value.strip().casefold()


def _as_choice_set(answer: Any) -> Optional[frozenset[str]]:
    if isinstance(answer, str):
        return frozenset([answer])
    if isinstance(answer, (list, tuple, set, frozenset)):
        if all(isinstance(item, str) for item in answer):
            return frozenset(answer)
    return None


def _as_single_text(answer: Any) -> Optional[str]:
    if isinstance(answer, bool):
        return "True" if answer else "False"
    if isinstance(answer, str):
        return answer
    if isinstance(answer, (list, tuple)) and len(answer) == 1:
        return _as_single_text(answer[0])
    return None


def _is_answered(answer: Any) -> bool:
    if answer is None:
        return False
    if isinstance(answer, str):
        return bool(answer.strip())
    if isinstance(answer, (list, tuple, set, frozenset, Mapping)):
        return len(answer) > 0
    return True


def grade_question(key: QuestionKey, answer: Any) -> bool:
    """Correctness of a single answer; never raises."""
    if key.question_type in (QuestionType.MULTIPLE_CHOICE, QuestionType.MATCHING):
        submitted = _as_choice_set(answer)
        return bool(key.correct_options) and submitted == key.correct_options

    if key.question_type == QuestionType.TRUE_FALSE:
        submitted = _as_single_text(answer)
        if submitted is None or len(key.correct_options) != 1:
            return False
        (correct,) = key.correct_options
        return _normalize_text(submitted) == _normalize_text(correct)

    if key.question_type.is_free_text():
        submitted = _as_single_text(answer)
        if submitted is None or not key.reference_answer or not key.reference_answer.strip():
            return False
        return _normalize_text(submitted) == _normalize_text(key.reference_answer)

    return False


def score(answer_key: AnswerKey, answers: Any) -> ScoreResult:
    """
    Grade a full answer set.

    Args:
        answer_key: Task answer key (question i is answered by answers[i])
        answers: Mapping of question index -> option text(s) or free text

    Returns:
        ScoreResult with one entry per question; unanswered questions count as incorrect
    """
    indexed = normalize_answers(answers)
    results = []
    for index, key in enumerate(answer_key.questions):
        answer = indexed.get(index)
        correct = grade_question(key, answer)
        results.append(
            QuestionResult(
                index=index,
                question_type=key.question_type,
                correct=correct,
                answered=_is_answered(answer),
                points_awarded=key.points if correct else 0.0,
                points_possible=key.points,
                question_id=key.question_id,
                correct_answer=key.expected_answer(),
                explanation=key.explanation,
            )
        )

    correct_count = sum(1 for result in results if result.correct)
    total = len(results)
    percent = percent_of(correct_count, total)
    return ScoreResult(
        per_question=tuple(results),
        percent=percent,
        passed=total > 0 and is_passing(percent),
        correct_count=correct_count,
        total_count=total,
        earned_points=sum(result.points_awarded for result in results),
        total_points=sum(result.points_possible for result in results),
    )


def rescore(answer_key_data: Mapping[str, Any], answers: Any) -> ScoreResult:
    """Re-derive a stored submission's score from its answer-key snapshot."""
    return score(AnswerKey.from_dict(answer_key_data), answers)


