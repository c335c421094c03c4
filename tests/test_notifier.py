from interview_engine.core.notifier import LinearReportMessage, Notifier
from interview_engine.models.report import LinearReportRequest, ScoreSummary


def _message(session_id="s1"):
    summary = ScoreSummary(total_score=1, max_score=2, percentage=50, passed=False, pass_threshold=70)
    return LinearReportMessage(request=LinearReportRequest(
        session_id=session_id,
        candidate_id="c1",
        template_id="t1",
        summary=summary,
    ))


async def test_publish_delivers_in_order(notifier, sender):
    notifier.publish(_message("s1"))
    notifier.publish(_message("s2"))
    await notifier.flush()

    assert [m.request.session_id for m in sender.sent] == ["s1", "s2"]


async def test_delivery_failure_does_not_stop_the_drain():
    class FlakySender:
        def __init__(self):
            self.sent = []

        async def send(self, message):
            if message.request.session_id == "bad":
                raise ConnectionError("smtp down")
            self.sent.append(message)

    sender = FlakySender()
    notifier = Notifier(sender=sender)
    notifier.publish(_message("bad"))
    notifier.publish(_message("good"))
    await notifier.flush()
    await notifier.close()

    assert [m.request.session_id for m in sender.sent] == ["good"]


async def test_disabled_notifier_drops_messages(sender):
    notifier = Notifier(sender=sender, enabled=False)
    notifier.publish(_message())
    await notifier.flush()
    assert sender.sent == []
