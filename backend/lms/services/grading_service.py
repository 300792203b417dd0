from typing import Any, Iterable, Optional, Tuple

from ..models.exam_model import QuestionType, DEFAULT_QUESTION_POINTS


def question_points(question: Any) -> int:
    return question.points or DEFAULT_QUESTION_POINTS


def grade_answer(question: Any, answer: Optional[str]) -> Tuple[Optional[bool], Optional[int]]:
    """
    Grade a single answer against a question at write time.
    - question: ORM ExamQuestion (or anything with question_type, correct_answer, points)
    - answer: the submitted text, a letter code for multiple choice

    Returns (is_correct, points_earned).
    Multiple choice gets full points on an exact match and 0 otherwise, there is no partial credit.
    Essay answers return (None, None) and wait for a teacher to grade them.
    """
    if question.question_type == QuestionType.ESSAY:
        return None, None

    is_correct = answer is not None and answer == question.correct_answer
    return is_correct, question_points(question) if is_correct else 0


def total_points(answers: Iterable[Any]) -> int:
    # ungraded essays (points_earned None) count as 0
    return sum(a.points_earned or 0 for a in answers)


def max_score_for(questions: Iterable[Any]) -> int:
    return sum(question_points(q) for q in questions)
