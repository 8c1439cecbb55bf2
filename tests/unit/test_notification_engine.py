import threading
from datetime import timedelta
import pytest
from slackmoji_notifier.pipeline.notifier import EmojiState, NotificationEngine, Outcome
from factories import NOW, FakeGenerator, FakePoster, added, removed


@pytest.fixture
def engine(generator, poster, clock):
    return NotificationEngine(generator, poster, clock=clock)


def test_new_emoji_is_announced(engine, generator, poster):
    """
    WHY: The whole point of the bot: a brand new emoji gets one generated sentence and one post.
    HOW: Handle an Added event for "tada".
    EXPECTED:
        1. Generator is prompted with the emoji name.
        2. One message is posted with the banner, the sentence and the full-size image.
        3. "tada" ends up NOTIFIED.
    """
    assert engine.handle(added("tada")) == Outcome.NOTIFIED

    assert generator.prompts == ["emoji name: tada"]
    assert len(poster.messages) == 1
    message = poster.messages[0]
    assert message.text == "*NEW EMOJI ADDED!*\n*Example Usage:*\nthis :tada: is giving main character energy"
    assert message.image_url == "https://emoji.slack-edge.com/T1/tada/abc.png?size=512"
    assert message.emoji_name == "tada"
    assert engine.state_of("tada") is EmojiState.NOTIFIED
    assert engine.is_known("tada")


def test_known_emoji_is_suppressed(engine, generator, poster):
    engine.handle(added("tada"))

    assert engine.handle(added("tada")) == Outcome.SUPPRESSED
    assert len(generator.prompts) == 1
    assert len(poster.messages) == 1


def test_concurrent_additions_notify_once(poster, clock):
    """
    WHY: Slack may deliver the same addition on several socket-mode worker threads at once.
    HOW:
        1. Block the generator inside the first attempt.
        2. While it is blocked, fire 7 more Added events for the same name from other threads.
        3. Release the generator.
    EXPECTED: One generation and one post; every other attempt is SUPPRESSED while the name is NOTIFYING.
    """
    generator = FakeGenerator()
    generator.release = threading.Event()
    engine = NotificationEngine(generator, poster, clock=clock)

    results = []
    first = threading.Thread(target=lambda: results.append(engine.handle(added("party"))))
    first.start()
    assert generator.entered.wait(5)
    assert engine.state_of("party") is EmojiState.NOTIFYING

    others = [threading.Thread(target=lambda: results.append(engine.handle(added("party")))) for _ in range(7)]
    for t in others:
        t.start()
    for t in others:
        t.join(5)
    assert results.count(Outcome.SUPPRESSED) == 7

    generator.release.set()
    first.join(5)

    assert results.count(Outcome.NOTIFIED) == 1
    assert len(generator.prompts) == 1
    assert len(poster.messages) == 1


def test_racing_threads_notify_once(generator, poster, clock):
    """
    WHY: Same guarantee without any coordination from the test: threads start together.
    EXPECTED: Exactly one NOTIFIED outcome across 16 racing handlers.
    """
    engine = NotificationEngine(generator, poster, clock=clock)
    barrier = threading.Barrier(16)
    results = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        outcome = engine.handle(added("blob_dance"))
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)

    assert results.count(Outcome.NOTIFIED) == 1
    assert results.count(Outcome.SUPPRESSED) == 15
    assert len(poster.messages) == 1


def test_generation_failure_rolls_back(poster, clock):
    """
    WHY: A flaky LLM must not permanently swallow an emoji.
    HOW: Fail generation once, then succeed on the next delivery.
    EXPECTED:
        1. First attempt returns FAILED, nothing is posted, and the name reads UNKNOWN immediately.
        2. A later Added event triggers a fresh attempt that succeeds.
    """
    generator = FakeGenerator(fail=True)
    engine = NotificationEngine(generator, poster, clock=clock)

    assert engine.handle(added("tada")) == Outcome.FAILED
    assert engine.state_of("tada") is EmojiState.UNKNOWN
    assert not engine.is_known("tada")
    assert poster.messages == []

    generator.fail = False
    assert engine.handle(added("tada")) == Outcome.NOTIFIED
    assert len(generator.prompts) == 2
    assert len(poster.messages) == 1


def test_post_failure_rolls_back(generator, clock):
    poster = FakePoster(fail=True)
    engine = NotificationEngine(generator, poster, clock=clock)

    assert engine.handle(added("tada")) == Outcome.FAILED
    assert engine.state_of("tada") is EmojiState.UNKNOWN

    poster.fail = False
    assert engine.handle(added("tada")) == Outcome.NOTIFIED
    assert len(poster.messages) == 1


def test_unexpected_error_rolls_back(poster, clock):
    """
    WHY: Even a bug in a collaborator must not leave a name stuck in NOTIFYING.
    """
    class Exploding:
        def generate(self, prompt, sink=None):
            raise RuntimeError("boom")

    engine = NotificationEngine(Exploding(), poster, clock=clock)
    assert engine.handle(added("tada")) == Outcome.FAILED
    assert engine.state_of("tada") is EmojiState.UNKNOWN
    assert engine.in_flight() == 0


def test_removed_resets_eligibility(engine, generator, poster):
    """
    WHY: An emoji deleted and later re-added with the same name is news again.
    HOW: Added("tada") -> Removed("tada") -> Added("tada").
    EXPECTED: Two full generate + post cycles.
    """
    assert engine.handle(added("tada")) == Outcome.NOTIFIED
    assert engine.handle(removed("tada")) == Outcome.RESET
    assert engine.state_of("tada") is EmojiState.UNKNOWN
    assert engine.handle(added("tada")) == Outcome.NOTIFIED

    assert len(generator.prompts) == 2
    assert len(poster.messages) == 2


def test_removed_unknown_emoji_is_noop(engine):
    assert engine.handle(removed("ghost")) == Outcome.IGNORED
    assert engine.state_of("ghost") is EmojiState.UNKNOWN


def test_removed_during_announcement_is_ignored(poster, clock):
    generator = FakeGenerator()
    generator.release = threading.Event()
    engine = NotificationEngine(generator, poster, clock=clock)

    t = threading.Thread(target=engine.handle, args=(added("tada"),))
    t.start()
    assert generator.entered.wait(5)

    assert engine.handle(removed("tada")) == Outcome.IGNORED

    generator.release.set()
    t.join(5)
    assert engine.state_of("tada") is EmojiState.NOTIFIED


def test_observe_only_marks_handled_without_side_effects(generator, poster, clock):
    """
    WHY: Dry-run mode lets operators watch the bot without spamming the channel or paying for tokens.
    HOW: Handle Added("party") twice with observe_only=True.
    EXPECTED:
        1. No generation, no post.
        2. "party" is NOTIFIED, so the second delivery is SUPPRESSED.
    """
    engine = NotificationEngine(generator, poster, observe_only=True, clock=clock)

    assert engine.handle(added("party")) == Outcome.OBSERVED
    assert engine.handle(added("party")) == Outcome.SUPPRESSED

    assert generator.prompts == []
    assert poster.messages == []
    assert engine.state_of("party") is EmojiState.NOTIFIED
    assert engine.in_flight() == 0


def test_failed_delivery_can_be_redelivered(engine, generator, poster):
    """
    WHY: A rollback exists so the same delivery can retry the announcement; the ledger must not block it.
    HOW: Fail the first attempt of Ev1, then redeliver Ev1 with a working generator, then once more.
    EXPECTED: FAILED, then NOTIFIED, then DUPLICATE once the announcement went out.
    """
    generator.fail = True
    assert engine.handle(added("tada", event_id="Ev1")) == Outcome.FAILED
    assert engine.state_of("tada") is EmojiState.UNKNOWN

    generator.fail = False
    assert engine.handle(added("tada", event_id="Ev1")) == Outcome.NOTIFIED
    assert engine.handle(added("tada", event_id="Ev1")) == Outcome.DUPLICATE
    assert len(poster.messages) == 1
    assert engine.ledger_size() == 1


def test_duplicate_delivery_id_is_dropped_after_reset(engine, poster):
    """
    WHY: The ledger catches an exact redelivery even when a removal made the name eligible again.
    """
    assert engine.handle(added("tada", event_id="Ev1")) == Outcome.NOTIFIED
    assert engine.handle(removed("tada", event_id="Ev2")) == Outcome.RESET

    assert engine.handle(added("tada", event_id="Ev1")) == Outcome.DUPLICATE
    assert engine.handle(added("tada", event_id="Ev3")) == Outcome.NOTIFIED
    assert len(poster.messages) == 2


def test_bulk_removal_shares_event_id(engine):
    engine.handle(added("a", event_id="Ev1"))
    engine.handle(added("b", event_id="Ev2"))

    assert engine.handle(removed("a", event_id="Ev3")) == Outcome.RESET
    assert engine.handle(removed("b", event_id="Ev3")) == Outcome.RESET


def test_prune_ledger_drops_old_entries(generator, poster):
    now = [NOW]
    engine = NotificationEngine(generator, poster, ledger_ttl=timedelta(seconds=60), clock=lambda: now[0])

    engine.handle(added("old", event_id="Ev-old"))
    now[0] = NOW + timedelta(seconds=45)
    engine.handle(added("new", event_id="Ev-new"))
    assert engine.ledger_size() == 2

    assert engine.prune_ledger(now=NOW + timedelta(seconds=90)) == 1
    assert engine.ledger_size() == 1

    assert engine.prune_ledger(now=NOW + timedelta(seconds=200)) == 1
    assert engine.ledger_size() == 0


def test_drain_waits_for_in_flight(poster, clock):
    generator = FakeGenerator()
    generator.release = threading.Event()
    engine = NotificationEngine(generator, poster, clock=clock)

    t = threading.Thread(target=engine.handle, args=(added("tada"),))
    t.start()
    assert generator.entered.wait(5)

    assert engine.drain(0.05) is False
    generator.release.set()
    assert engine.drain(5) is True
    t.join(5)


def test_engine_requires_collaborators(generator):
    with pytest.raises(ValueError):
        NotificationEngine(generator, None)


def test_closed_engine_refuses_new_claims(engine, generator, poster):
    """
    WHY: Once shutdown has drained in-flight work, a late envelope must not start a new announcement.
    HOW: Close the engine, then hand it a fresh addition.
    EXPECTED: IGNORED, nothing generated or posted, the name stays UNKNOWN and its delivery is not recorded.
    """
    engine.close()

    assert engine.closed
    assert engine.handle(added("tada", event_id="Ev1")) == Outcome.IGNORED
    assert generator.prompts == []
    assert poster.messages == []
    assert engine.state_of("tada") is EmojiState.UNKNOWN
    assert engine.ledger_size() == 0
    assert engine.drain(0) is True


def test_close_lets_in_flight_announcement_finish(poster, clock):
    generator = FakeGenerator()
    generator.release = threading.Event()
    engine = NotificationEngine(generator, poster, clock=clock)

    t = threading.Thread(target=engine.handle, args=(added("tada"),))
    t.start()
    assert generator.entered.wait(5)

    engine.close()
    assert engine.handle(added("party")) == Outcome.IGNORED
    generator.release.set()
    assert engine.drain(5) is True
    t.join(5)

    assert engine.state_of("tada") is EmojiState.NOTIFIED
    assert [m.emoji_name for m in poster.messages] == ["tada"]
