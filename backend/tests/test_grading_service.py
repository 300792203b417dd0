from lms.models.exam_model import QuestionType
from lms.services.grading_service import grade_answer, max_score_for, total_points


class DummyQuestion:
    def __init__(self, question_type, correct_answer=None, points=1):
        self.question_type = question_type
        self.correct_answer = correct_answer
        self.points = points


class DummyAnswer:
    def __init__(self, points_earned):
        self.points_earned = points_earned


def test_multiple_choice_correct_and_incorrect():
    q = DummyQuestion(QuestionType.MULTIPLE_CHOICE, correct_answer="B", points=5)

    # correct answer
    assert grade_answer(q, "B") == (True, 5)

    # incorrect answer
    assert grade_answer(q, "A") == (False, 0)

    # missing answer
    assert grade_answer(q, None) == (False, 0)
    assert grade_answer(q, "") == (False, 0)


def test_multiple_choice_match_is_exact():
    q = DummyQuestion(QuestionType.MULTIPLE_CHOICE, correct_answer="B", points=5)

    # letter codes are stored upper case, anything else is a different answer
    assert grade_answer(q, "b") == (False, 0)
    assert grade_answer(q, " B") == (False, 0)


def test_missing_points_default_to_one():
    q = DummyQuestion(QuestionType.MULTIPLE_CHOICE, correct_answer="A", points=None)
    assert grade_answer(q, "A") == (True, 1)
    assert max_score_for([q]) == 1


def test_essay_is_left_for_manual_grading():
    q = DummyQuestion(QuestionType.ESSAY, points=10)
    assert grade_answer(q, "Some text") == (None, None)
    assert grade_answer(q, None) == (None, None)


def test_totals():
    questions = [
        DummyQuestion(QuestionType.MULTIPLE_CHOICE, "B", 5),
        DummyQuestion(QuestionType.MULTIPLE_CHOICE, "A", 10),
        DummyQuestion(QuestionType.ESSAY, points=20),
    ]
    assert max_score_for(questions) == 35
    assert max_score_for([]) == 0

    # ungraded essay counts as zero
    assert total_points([DummyAnswer(5), DummyAnswer(0), DummyAnswer(None)]) == 5
