import time
import pytest
from slackmoji_notifier.pipeline.notifier import EmojiState, NotificationEngine, Outcome
from slackmoji_notifier.pipeline.run import EmojiPipeline
from slackmoji_notifier.pipeline.staleness import StalenessFilter
from factories import add_event, emoji_envelope, remove_event


@pytest.fixture
def pipeline(generator, poster):
    # real clock: envelopes are stamped with time.time()
    engine = NotificationEngine(generator, poster)
    return EmojiPipeline(engine, StalenessFilter())


def test_envelope_end_to_end(pipeline, generator, poster):
    """
    WHY: Verify the whole intake path from a raw Socket Mode request to a posted announcement.
    HOW: Feed an emoji_changed add envelope into the pipeline.
    EXPECTED: One NOTIFIED outcome and one posted message for the emoji.
    """
    outcomes = pipeline.handle_envelope(emoji_envelope(add_event("party_parrot")))

    assert outcomes == [Outcome.NOTIFIED]
    assert generator.prompts == ["emoji name: party_parrot"]
    assert poster.messages[0].emoji_name == "party_parrot"


def test_retransmission_is_rejected(pipeline, poster):
    """
    WHY: An envelope identical to an accepted one but marked as retry must never re-announce.
    HOW: Deliver the first attempt, then the same envelope with retry_attempt=1 after a removal reset the name.
    EXPECTED: The retry is STALE even though the name would be eligible again.
    """
    pipeline.handle_envelope(emoji_envelope(add_event("tada"), event_id="Ev1"))
    pipeline.handle_envelope(emoji_envelope(remove_event("tada"), event_id="Ev2"))

    outcomes = pipeline.handle_envelope(emoji_envelope(add_event("tada"), event_id="Ev1", retry_attempt=1))

    assert outcomes == [Outcome.STALE]
    assert len(poster.messages) == 1


def test_old_redelivery_is_rejected(pipeline, poster):
    outcomes = pipeline.handle_envelope(emoji_envelope(add_event("tada"), event_time=int(time.time()) - 90))
    assert outcomes == [Outcome.STALE]
    assert poster.messages == []


def test_irrelevant_envelope_produces_nothing(pipeline, generator):
    assert pipeline.handle_envelope(emoji_envelope({"type": "message", "text": "hi"})) == []
    assert generator.prompts == []


def test_bulk_removal_resets_each_name(pipeline):
    pipeline.handle_envelope(emoji_envelope(add_event("a"), event_id="Ev1"))
    pipeline.handle_envelope(emoji_envelope(add_event("b"), event_id="Ev2"))

    outcomes = pipeline.handle_envelope(emoji_envelope(remove_event("a", "b", "never_seen"), event_id="Ev3"))

    assert outcomes == [Outcome.RESET, Outcome.RESET, Outcome.IGNORED]
    assert pipeline.engine.state_of("a") is EmojiState.UNKNOWN


def test_closed_pipeline_drops_envelopes(pipeline, generator):
    pipeline.close()
    assert pipeline.closed
    assert pipeline.handle_envelope(emoji_envelope(add_event("tada"))) == []
    assert generator.prompts == []


def test_failed_envelope_is_retried_on_redelivery(pipeline, generator, poster):
    """
    WHY: A rolled-back announcement must be retryable when Slack delivers the same event again.
    HOW: Fail the first delivery of Ev1, then hand the identical envelope to the pipeline again.
    EXPECTED: [FAILED] then [NOTIFIED], with exactly one posted message.
    """
    envelope = emoji_envelope(add_event("tada"), event_id="Ev1")
    generator.fail = True
    assert pipeline.handle_envelope(envelope) == [Outcome.FAILED]
    assert pipeline.engine.state_of("tada") is EmojiState.UNKNOWN

    generator.fail = False
    assert pipeline.handle_envelope(envelope) == [Outcome.NOTIFIED]
    assert len(poster.messages) == 1


def test_close_also_closes_engine(pipeline):
    pipeline.close()
    assert pipeline.engine.closed
