import asyncio
from datetime import datetime, timedelta

import pytest

from interview_engine.core.errors import (
    AnswerAlreadySubmittedError,
    NoMoreQuestionsError,
    QuestionNotInSessionError,
    SessionAccessError,
    SessionNotActiveError,
    TemplateNotFoundError,
    TimeLimitExceededError,
)
from interview_engine.core.evaluation_pipeline import EvaluationPipeline
from interview_engine.core.graders import AnswerGrader
from interview_engine.core.job_queue import InProcessJobQueue
from interview_engine.core.linear_orchestrator import LinearOrchestrator
from interview_engine.core.notifier import LinearReportMessage
from interview_engine.models.evaluation import AnswerStatus
from interview_engine.models.interview import IntegrityEventType, InterviewTemplate, SessionStatus
from tests.helpers import code_question, rubric_question, selector_question

CANDIDATE = "cand-1"


class RecordingQueue:
    def __init__(self):
        self.jobs = []

    async def enqueue(self, job):
        self.jobs.append(job)


@pytest.fixture
def queue():
    return RecordingQueue()


@pytest.fixture
def orchestrator(store, queue, notifier, settings):
    return LinearOrchestrator(store, queue, notifier=notifier, settings=settings)


@pytest.fixture
async def template(orchestrator):
    return await orchestrator.create_template(InterviewTemplate(
        name="Backend screen",
        role="backend",
        questions=[
            selector_question({"a"}, order_index=0, question_id="q-mcq"),
            code_question([("1", "2"), ("2", "4")]).model_copy(update={"order_index": 1}),
            rubric_question([("Clarity", 5)]).model_copy(update={"order_index": 2}),
        ],
        time_limit_minutes=30,
        passing_score_percent=60,
    ))


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================

async def test_start_creates_and_resumes(orchestrator, template):
    session = await orchestrator.start_session(CANDIDATE, template.id)
    again = await orchestrator.start_session(CANDIDATE, template.id)

    assert session.status == SessionStatus.IN_PROGRESS
    assert session.time_limit_minutes == 30
    assert session.started_at is not None
    assert again.id == session.id


async def test_start_unknown_template(orchestrator):
    with pytest.raises(TemplateNotFoundError):
        await orchestrator.start_session(CANDIDATE, "missing")


async def test_templates_stamp_their_questions(orchestrator, template, store):
    assert all(q.template_id == template.id for q in template.questions)
    assert (await store.get_question("q-mcq")).template_id == template.id
    assert [t.id for t in await orchestrator.list_templates()] == [template.id]


async def test_next_question_is_sanitized_and_stable(orchestrator, template, store):
    session = await orchestrator.start_session(CANDIDATE, template.id)

    first = await orchestrator.get_next_question(session.id, CANDIDATE)
    again = await orchestrator.get_next_question(session.id, CANDIDATE)

    assert first.question.id == again.question.id == "q-mcq"
    assert first.question.payload.correct_ids == frozenset()
    assert first.index == 0
    assert first.total == 3
    assert 0 < first.time_remaining_seconds <= 30 * 60
    assert (await store.get_linear_session(session.id)).served_question_ids == ["q-mcq"]


async def test_submit_queues_evaluation_and_advances(orchestrator, template, queue, store):
    session = await orchestrator.start_session(CANDIDATE, template.id)
    await orchestrator.get_next_question(session.id, CANDIDATE)

    result = await orchestrator.submit_answer(
        session.id, CANDIDATE, "q-mcq", selected_option_ids=["a"], time_taken_seconds=12
    )

    answer = await store.get_answer(result.answer_id)
    assert answer.status == AnswerStatus.PENDING
    assert answer.max_score == 1.0
    assert result.next_available
    assert [(j.answer_id, j.question_type) for j in queue.jobs] == [(answer.id, "mcq")]
    assert (await store.get_linear_session(session.id)).current_question_index == 1

    with pytest.raises(AnswerAlreadySubmittedError):
        await orchestrator.submit_answer(session.id, CANDIDATE, "q-mcq", selected_option_ids=["a"])
    with pytest.raises(QuestionNotInSessionError):
        await orchestrator.submit_answer(session.id, CANDIDATE, "other", submitted_text="x")


async def test_exhausted_template(orchestrator, template, store):
    session = await orchestrator.start_session(CANDIDATE, template.id)
    for _ in range(3):
        served = await orchestrator.get_next_question(session.id, CANDIDATE)
        result = await orchestrator.submit_answer(session.id, CANDIDATE, served.question.id, submitted_text="x")

    assert not result.next_available
    assert (await store.get_linear_session(session.id)).current_question_index == 3
    with pytest.raises(NoMoreQuestionsError):
        await orchestrator.get_next_question(session.id, CANDIDATE)


async def test_answer_submitted_out_of_order_is_never_served(orchestrator, template):
    code_id, rubric_id = template.questions[1].id, template.questions[2].id
    session = await orchestrator.start_session(CANDIDATE, template.id)
    assert (await orchestrator.get_next_question(session.id, CANDIDATE)).question.id == "q-mcq"

    await orchestrator.submit_answer(session.id, CANDIDATE, rubric_id, submitted_text="ahead")
    assert (await orchestrator.get_next_question(session.id, CANDIDATE)).question.id == "q-mcq"

    await orchestrator.submit_answer(session.id, CANDIDATE, "q-mcq", selected_option_ids=["a"])
    assert (await orchestrator.get_next_question(session.id, CANDIDATE)).question.id == code_id

    result = await orchestrator.submit_answer(session.id, CANDIDATE, code_id, submitted_text="x")
    assert not result.next_available
    with pytest.raises(NoMoreQuestionsError):
        await orchestrator.get_next_question(session.id, CANDIDATE)


async def test_time_limit_closes_session(orchestrator, template, store, notifier, sender):
    session = await orchestrator.start_session(CANDIDATE, template.id)
    await store.update_linear_session(session.id, {"started_at": datetime.utcnow() - timedelta(minutes=31)})

    with pytest.raises(TimeLimitExceededError):
        await orchestrator.get_next_question(session.id, CANDIDATE)

    closed = await store.get_linear_session(session.id)
    assert closed.status == SessionStatus.COMPLETED
    assert closed.completed_at is not None
    await notifier.flush()
    assert isinstance(sender.sent[0], LinearReportMessage)


async def test_complete_is_idempotent(orchestrator, template, notifier, sender):
    session = await orchestrator.start_session(CANDIDATE, template.id)

    completed = await orchestrator.complete_session(session.id, CANDIDATE)
    again = await orchestrator.complete_session(session.id, CANDIDATE)

    assert completed.status == SessionStatus.COMPLETED
    assert completed.duration_seconds is not None
    assert again.completed_at == completed.completed_at
    await notifier.flush()
    assert len(sender.sent) == 1
    assert sender.sent[0].request.session_id == session.id
    assert sender.sent[0].request.summary.pass_threshold == 60

    with pytest.raises(SessionNotActiveError):
        await orchestrator.submit_answer(session.id, CANDIDATE, "q-mcq", selected_option_ids=["a"])
    assert session.id not in orchestrator._locks


async def test_abandon(orchestrator, template, notifier, sender):
    session = await orchestrator.start_session(CANDIDATE, template.id)

    abandoned = await orchestrator.abandon_session(session.id, CANDIDATE)

    assert abandoned.status == SessionStatus.ABANDONED
    with pytest.raises(SessionNotActiveError):
        await orchestrator.abandon_session(session.id, CANDIDATE)
    with pytest.raises(SessionNotActiveError):
        await orchestrator.complete_session(session.id, CANDIDATE)
    await notifier.flush()
    assert sender.sent == []
    assert session.id not in orchestrator._locks


async def test_integrity_events_flag_at_threshold(orchestrator, template):
    session = await orchestrator.start_session(CANDIDATE, template.id)

    for _ in range(3):
        updated = await orchestrator.record_integrity_event(session.id, CANDIDATE, IntegrityEventType.TAB_SWITCH)
    updated = await orchestrator.record_integrity_event(session.id, CANDIDATE, IntegrityEventType.WINDOW_BLUR)
    assert not updated.is_integrity_flagged

    updated = await orchestrator.record_integrity_event(session.id, CANDIDATE, IntegrityEventType.COPY_PASTE)
    assert updated.is_integrity_flagged
    assert updated.tab_switch_count == 3
    assert updated.copy_paste_count == 1
    assert updated.integrity_event_count == 5
    assert updated.status == SessionStatus.IN_PROGRESS


async def test_other_candidate_cannot_touch_session(orchestrator, template):
    session = await orchestrator.start_session(CANDIDATE, template.id)
    with pytest.raises(SessionAccessError):
        await orchestrator.get_next_question(session.id, "intruder")
    with pytest.raises(SessionAccessError):
        await orchestrator.record_integrity_event(session.id, "intruder", IntegrityEventType.TAB_SWITCH)


# =============================================================================
# END TO END WITH BACKGROUND GRADING
# =============================================================================

async def test_answers_are_graded_in_background(store, settings, notifier, sender):
    pipeline = EvaluationPipeline(store, AnswerGrader())
    queue = InProcessJobQueue(
        pipeline.run,
        on_exhausted=pipeline.force_finalize,
        backoff_seconds=0,
        backoff_max_seconds=0,
        workers=2,
    )
    orchestrator = LinearOrchestrator(store, queue, notifier=notifier, settings=settings)
    template = await orchestrator.create_template(InterviewTemplate(
        name="Mixed",
        role="backend",
        questions=[
            selector_question({"a"}, order_index=0, question_id="m1"),
            selector_question({"b"}, order_index=1, question_id="m2"),
            rubric_question([("Clarity", 10)]).model_copy(update={"order_index": 2, "id": "r1"}),
        ],
    ))
    session = await orchestrator.start_session(CANDIDATE, template.id)

    await orchestrator.submit_answer(session.id, CANDIDATE, "m1", selected_option_ids=["a"])
    await orchestrator.submit_answer(session.id, CANDIDATE, "m2", selected_option_ids=["a"])
    await orchestrator.submit_answer(session.id, CANDIDATE, "r1", submitted_text="We rolled back and added alerts")
    await asyncio.wait_for(queue.join(), timeout=5)
    await queue.close()

    result = await orchestrator.get_session_result(session.id, CANDIDATE)
    assert all(a.status == AnswerStatus.EVALUATED for a in result.answers)
    sections = {s.section: s.percentage for s in result.summary.sections}
    assert sections == {"mcq": 50.0, "behavioral": 50.0}
    assert result.summary.percentage == 50.0
    assert not result.summary.passed
    assert result.session.percentage_score == 50.0

    await orchestrator.complete_session(session.id, CANDIDATE)
    await notifier.flush()
    assert sender.sent[0].request.summary.total_score == 6.0
