from datetime import datetime, timedelta

from interview_engine.core.sequencer import QuestionSequencer
from interview_engine.models.evaluation import Answer, AnswerStatus
from interview_engine.models.interview import LinearSession, SessionStatus
from interview_engine.models.question import QuestionDifficulty
from tests.helpers import selector_question

EASY, MEDIUM, HARD = QuestionDifficulty.EASY, QuestionDifficulty.MEDIUM, QuestionDifficulty.HARD


def _template(*difficulties):
    return [
        selector_question({"a"}, difficulty=d, order_index=i, question_id=f"q{i}")
        for i, d in enumerate(difficulties)
    ]


def _session(served, index=None):
    return LinearSession(
        candidate_id="c1",
        template_id="t1",
        status=SessionStatus.IN_PROGRESS,
        served_question_ids=list(served),
        current_question_index=len(served) if index is None else index,
    )


def _evaluated(question_id, score, minutes_ago=0, max_score=1.0):
    return Answer(
        session_id="s1",
        question_id=question_id,
        status=AnswerStatus.EVALUATED,
        score=score,
        max_score=max_score,
        evaluated_at=datetime.utcnow() - timedelta(minutes=minutes_ago),
    )


def test_template_order_before_two_answers():
    questions = _template(HARD, EASY, MEDIUM)
    sequencer = QuestionSequencer()

    first = sequencer.next_question(questions, _session([]), [])
    assert first.id == "q0"

    second = sequencer.next_question(questions, _session(["q0"]), [_evaluated("q0", 0)])
    assert second.id == "q1"


def test_strong_candidate_gets_harder_questions_first():
    questions = _template(EASY, EASY, EASY, MEDIUM, HARD)
    answers = [_evaluated("q0", 1), _evaluated("q1", 1)]

    question = QuestionSequencer().next_question(questions, _session(["q0", "q1"]), answers)

    assert question.id == "q4"


def test_weak_candidate_gets_easier_questions_first():
    questions = _template(HARD, HARD, HARD, MEDIUM, EASY)
    answers = [_evaluated("q0", 0), _evaluated("q1", 0.2)]

    question = QuestionSequencer().next_question(questions, _session(["q0", "q1"]), answers)

    assert question.id == "q4"


def test_middle_band_keeps_template_order():
    questions = _template(EASY, EASY, HARD, EASY)
    answers = [_evaluated("q0", 0.5), _evaluated("q1", 0.6)]

    question = QuestionSequencer().next_question(questions, _session(["q0", "q1"]), answers)

    assert question.id == "q2"


def test_only_recent_window_counts():
    sequencer = QuestionSequencer(recent_window=3)
    answers = [
        _evaluated("old", 0, minutes_ago=30),
        _evaluated("a", 1, minutes_ago=3),
        _evaluated("b", 1, minutes_ago=2),
        _evaluated("c", 1, minutes_ago=1),
    ]
    assert sequencer.recent_average(answers) == 100


def test_recent_average_ignores_unevaluated():
    pending = Answer(session_id="s1", question_id="q0")
    assert QuestionSequencer().recent_average([pending]) is None


def test_pending_answers_keep_template_order():
    questions = _template(EASY, EASY, HARD)
    answers = [
        Answer(session_id="s1", question_id="q0"),
        Answer(session_id="s1", question_id="q1"),
    ]

    question = QuestionSequencer().next_question(questions, _session(["q0", "q1"]), answers)

    assert question.id == "q2"


def test_serving_is_idempotent():
    questions = _template(EASY, EASY, EASY, HARD)
    session = _session(["q0", "q1", "q3"], index=2)
    # Scores moved since q3 was served; it is still the question at index 2
    answers = [_evaluated("q0", 0), _evaluated("q1", 0)]

    assert QuestionSequencer().next_question(questions, session, answers).id == "q3"


def test_served_questions_never_repeat():
    questions = _template(EASY, MEDIUM, HARD, EASY)
    sequencer = QuestionSequencer()
    served: list[str] = []
    answers: list[Answer] = []

    while True:
        question = sequencer.next_question(questions, _session(served), answers)
        if question is None:
            break
        served.append(question.id)
        answers.append(_evaluated(question.id, 1))

    assert sorted(served) == ["q0", "q1", "q2", "q3"]


def test_exhausted_template_returns_none():
    questions = _template(EASY)
    assert QuestionSequencer().next_question(questions, _session(["q0"]), [_evaluated("q0", 1)]) is None


def test_answered_questions_are_skipped_even_when_submitted_ahead():
    questions = _template(EASY, EASY, EASY)
    # q0 served, q2 answered before being served
    session = _session(["q0", "q2"], index=1)
    answers = [Answer(session_id="s1", question_id="q2")]

    assert QuestionSequencer().next_question(questions, session, answers).id == "q0"

    answers.append(_evaluated("q0", 1))
    assert QuestionSequencer().next_question(questions, session, answers).id == "q1"
