"""Test module for the push notification service."""
import asyncio
import time

import pytest
from firebase_admin import exceptions as firebase_exceptions
from sqlalchemy.exc import OperationalError

from pushdelivery.core.config import settings
from pushdelivery.core.exceptions import (
    DirectoryUnavailableException,
    DispatchUnavailableException,
    InvalidPayloadException,
    InvalidRecipientException,
    PushTimeoutException,
    RecipientNotFoundException,
    TokenPruneException,
)
from pushdelivery.modules.notifications.repository import DeviceTokenStore
from pushdelivery.modules.notifications.service import SendState
from tests.fakes import FakeGateway, unregistered


@pytest.mark.asyncio
async def test_duplicate_tokens_and_dead_token_pruned(register, store, make_service):
    """Test case for a duplicated live token and one unregistered token."""
    register("u1", "A", "A", "B")
    gateway = FakeGateway(failures={"B": unregistered("B")})
    service = make_service(gateway)

    outcome = await service.send("u1", "New message", "hello")

    assert outcome.state is SendState.DONE
    assert outcome.success_count == 1
    assert outcome.failure_count == 1
    assert outcome.pruned_tokens == ("B",)
    assert gateway.call_count == 1
    assert sorted(gateway.sent_tokens) == ["A", "B"]
    assert store.tokens_for("u1") == frozenset({"A"})


@pytest.mark.asyncio
async def test_unknown_recipient_never_reaches_gateway(store, make_service):
    """Test case for a recipient missing from the directory."""
    gateway = FakeGateway()
    service = make_service(gateway)

    with pytest.raises(RecipientNotFoundException) as exc_info:
        await service.send("u2", "Hi", "there")

    assert exc_info.value.details["requestedId"] == "u2"
    assert gateway.call_count == 0


@pytest.mark.asyncio
async def test_known_recipient_without_devices(store, make_service):
    """Test case for a registered user who never enabled push."""
    store.ensure_recipient("u3")
    gateway = FakeGateway()
    service = make_service(gateway)

    outcome = await service.send("u3", "Hi", "there")

    assert outcome.state is SendState.NO_DEVICES
    assert (outcome.success_count, outcome.failure_count) == (0, 0)
    assert gateway.call_count == 0


@pytest.mark.asyncio
async def test_zero_devices_needs_no_gateway(store, make_service):
    store.ensure_recipient("u3")
    service = make_service(None)

    outcome = await service.send("u3", "Hi", "there")

    assert outcome.state is SendState.NO_DEVICES


@pytest.mark.asyncio
@pytest.mark.parametrize("recipient", ["u1", "u2"])
async def test_empty_title_rejected_before_resolution(register, make_service, monkeypatch, recipient):
    """Test case for invalid content never reaching the directory or the gateway."""
    register("u1", "A")
    gateway = FakeGateway()
    service = make_service(gateway)

    async def _resolve(_recipient_id):
        raise AssertionError("resolver must not run for invalid content")

    monkeypatch.setattr(service.resolver, "resolve", _resolve)

    with pytest.raises(InvalidPayloadException) as exc_info:
        await service.send(recipient, "", "hello")

    assert exc_info.value.details["field"] == "title"
    assert gateway.call_count == 0


@pytest.mark.asyncio
async def test_blank_recipient_rejected(make_service):
    gateway = FakeGateway()
    service = make_service(gateway)

    with pytest.raises(InvalidRecipientException):
        await service.send("   ", "Hi", "there")

    assert gateway.call_count == 0


@pytest.mark.asyncio
async def test_transient_failures_never_prune(register, store, make_service):
    """Test case for rate-limited and unavailable tokens staying registered."""
    register("u1", "A", "B", "C")
    gateway = FakeGateway(
        failures={
            "A": firebase_exceptions.UnavailableError("unavailable"),
            "B": firebase_exceptions.ResourceExhaustedError("quota"),
            "C": firebase_exceptions.InvalidArgumentError("Invalid JSON payload received."),
        }
    )
    service = make_service(gateway)

    outcome = await service.send("u1", "Hi", "there")

    assert outcome.success_count == 0
    assert outcome.failure_count == 3
    assert outcome.pruned_tokens == ()
    assert sorted(outcome.transient_tokens) == ["A", "B", "C"]
    assert store.tokens_for("u1") == frozenset({"A", "B", "C"})


@pytest.mark.asyncio
async def test_outcome_counts_bounded_by_distinct_tokens(register, make_service):
    register("u1", "A", "A", "A", "B", "B")
    service = make_service(FakeGateway())

    outcome = await service.send("u1", "Hi", "there")

    assert outcome.attempted == 2
    assert outcome.success_count == 2


@pytest.mark.asyncio
async def test_prune_failure_keeps_delivery_outcome(register, make_service, monkeypatch):
    """Test case for a failed prune surfacing as a warning only."""
    register("u1", "A", "B")
    service = make_service(FakeGateway(failures={"B": unregistered("B")}))

    async def _fail(recipient_id, _tokens):
        raise TokenPruneException(recipient_id, "OperationalError")

    monkeypatch.setattr(service.pruner, "prune", _fail)

    outcome = await service.send("u1", "Hi", "there")

    assert outcome.state is SendState.DONE
    assert outcome.success_count == 1
    assert outcome.failure_count == 1
    assert outcome.prune_failed is True
    assert outcome.pruned_tokens == ()
    assert outcome.warnings == ("1 dead tokens could not be pruned",)


@pytest.mark.asyncio
async def test_dispatch_timeout_prunes_nothing(register, store, make_service, monkeypatch):
    """Test case for a timed-out dispatch leaving the token store untouched."""
    register("u1", "A", "B")
    service = make_service(FakeGateway(delay=0.3, failures={"B": unregistered("B")}))
    monkeypatch.setattr(service.engine, "timeout", 0.05)

    with pytest.raises(PushTimeoutException):
        await service.send("u1", "Hi", "there")

    assert store.tokens_for("u1") == frozenset({"A", "B"})


@pytest.mark.asyncio
async def test_gateway_outage_propagates(register, store, make_service):
    register("u1", "A")
    service = make_service(
        FakeGateway(error=firebase_exceptions.UnavailableError("FCM is down"))
    )

    with pytest.raises(DispatchUnavailableException):
        await service.send("u1", "Hi", "there")

    assert store.tokens_for("u1") == frozenset({"A"})


@pytest.mark.asyncio
async def test_directory_outage_propagates(make_service, store, monkeypatch):
    def _fail(_self, _recipient_id):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(DeviceTokenStore, "snapshot", _fail)
    gateway = FakeGateway()
    service = make_service(gateway)

    with pytest.raises(DirectoryUnavailableException):
        await service.send("u1", "Hi", "there")

    assert gateway.call_count == 0


@pytest.mark.asyncio
async def test_muted_category_is_suppressed(register, store, make_service):
    """Test case for recipient preferences muting a notification type."""
    register("u1", "A")
    store.set_preferences("u1", reactions=False)
    gateway = FakeGateway()
    service = make_service(gateway)

    suppressed = await service.send("u1", "Like", "liked your post", notification_type="reaction")
    delivered = await service.send("u1", "Hi", "there", notification_type="text")

    assert suppressed.state is SendState.SUPPRESSED
    assert suppressed.attempted == 0
    assert delivered.state is SendState.DONE
    assert gateway.call_count == 1


@pytest.mark.asyncio
async def test_payload_passes_through_to_gateway(register, make_service):
    register("u1", "A")
    gateway = FakeGateway()
    service = make_service(gateway)

    await service.send(
        "u1", "Call", "incoming", url="/calls/9", icon="/avatar.png", notification_type="video_call"
    )

    message = gateway.messages[0]
    assert message.data == {"url": "/calls/9", "type": "video_call"}
    assert message.webpush.notification.icon == "/avatar.png"


@pytest.mark.asyncio
async def test_plain_http_url_still_delivered(register, make_service):
    """Test case for an http:// deep link alongside an https public base url."""
    register("u1", "A")
    gateway = FakeGateway()
    config = settings.model_copy(update={"PUBLIC_BASE_URL": "https://chat.example.com"})
    service = make_service(gateway, config=config)

    outcome = await service.send("u1", "Hi", "there", url="http://example.com/post/1")

    assert outcome.state is SendState.DONE
    assert outcome.success_count == 1
    message = gateway.messages[0]
    assert message.webpush.fcm_options is None
    assert message.data["url"] == "http://example.com/post/1"


@pytest.mark.asyncio
async def test_prune_timeout_warning_does_not_claim_failure(register, make_service, monkeypatch):
    """Test case for a slow prune whose outcome is unknown."""
    register("u1", "A", "B")
    service = make_service(FakeGateway(failures={"B": unregistered("B")}))
    monkeypatch.setattr(service.pruner, "timeout", 0.05)
    monkeypatch.setattr(
        DeviceTokenStore, "remove_tokens", lambda *_args: time.sleep(0.3) or 1
    )

    outcome = await service.send("u1", "Hi", "there")

    assert outcome.state is SendState.DONE
    assert outcome.prune_failed is True
    assert outcome.warnings == (
        "pruning 1 dead tokens timed out; they may or may not have been removed",
    )


@pytest.mark.asyncio
async def test_entity_id_reaches_gateway(register, make_service):
    register("u1", "A")
    gateway = FakeGateway()
    service = make_service(gateway)

    await service.send(
        "u1", "Comment", "new reply", url="/post/7", notification_type="comment", entity_id="7"
    )

    assert gateway.messages[0].data == {"url": "/post/7", "type": "comment", "entityId": "7"}


@pytest.mark.asyncio
async def test_send_many_aggregates_per_recipient(register, store, make_service):
    """Test case for one payload fanned out to several recipients."""
    register("u1", "A", "B")
    register("u2", "C")
    store.ensure_recipient("u3")
    gateway = FakeGateway(failures={"B": unregistered("B")})
    service = make_service(gateway)

    fanout = await service.send_many(
        ["u1", " u2 ", "u1", "ghost", "", "u3"], "Group", "new message"
    )

    assert fanout.recipient_count == 4
    assert [o.recipient_id for o in fanout.outcomes] == ["u1", "u2", "u3"]
    assert fanout.errors == {"ghost": "recipient_not_found"}
    assert fanout.success_count == 2
    assert fanout.failure_count == 1
    assert fanout.pruned_count == 1
    assert gateway.call_count == 2
    assert store.tokens_for("u1") == frozenset({"A"})


@pytest.mark.asyncio
async def test_send_many_runs_in_bounded_groups(store, make_service, monkeypatch):
    """Test case for no more than `fanout_group_size` sends in flight at once."""
    service = make_service(FakeGateway())
    service.fanout_group_size = 3
    in_flight = 0
    peak = 0

    async def _send(recipient_id, *_args):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        raise RecipientNotFoundException(recipient_id)

    monkeypatch.setattr(service, "send", _send)

    fanout = await service.send_many([f"u{i}" for i in range(7)], "Hi", "there")

    assert peak == 3
    assert len(fanout.errors) == 7
    assert fanout.outcomes == ()


@pytest.mark.asyncio
async def test_send_many_rejects_invalid_content_up_front(make_service):
    gateway = FakeGateway()
    service = make_service(gateway)

    with pytest.raises(InvalidPayloadException):
        await service.send_many(["u1", "u2"], "Hi", "   ")

    assert gateway.call_count == 0
