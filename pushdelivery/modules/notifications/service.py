"""Push notification orchestration.

Responsibilities:
- Validate content, resolve the recipient's devices, and respect muted categories.
- Dispatch one multicast batch, classify the per-token report, and prune dead tokens.
- Return an informational `DeliveryOutcome`; per-token failures never become call errors and a
  failed prune never downgrades deliveries that already happened.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Iterable, Optional

from pushdelivery.core.exceptions import (
    AppException,
    RecipientNotFoundException,
    TokenPruneException,
)
from pushdelivery.core.logging_config import bind_request_context, reset_request_context

from .classifier import Classification, classify_results
from .common import logger, unique_in_order
from .dispatch import DispatchEngine
from .payloads import PayloadBuilder, category_for_type, validate_content
from .pruner import PRUNE_TIMEOUT_REASON, TokenPruner
from .resolver import RecipientResolver, normalize_recipient_id


class SendState(str, enum.Enum):
    RESOLVING = "resolving"
    BUILDING = "building"
    DISPATCHING = "dispatching"
    CLASSIFYING = "classifying"
    PRUNING = "pruning"
    DONE = "done"
    NO_RECIPIENT = "no_recipient"
    NO_DEVICES = "no_devices"
    SUPPRESSED = "suppressed"


TERMINAL_STATES = frozenset(
    {SendState.DONE, SendState.NO_RECIPIENT, SendState.NO_DEVICES, SendState.SUPPRESSED}
)


@dataclass(frozen=True)
class DeliveryOutcome:
    """Aggregate result of one `send` call; a return value, never persisted."""

    recipient_id: str
    state: SendState
    success_count: int = 0
    failure_count: int = 0
    pruned_tokens: tuple[str, ...] = ()
    transient_tokens: tuple[str, ...] = ()
    prune_failed: bool = False
    warnings: tuple[str, ...] = field(default=())

    @property
    def attempted(self) -> int:
        return self.success_count + self.failure_count


@dataclass(frozen=True)
class FanOutOutcome:
    """Aggregate of one payload sent to many recipients.

    `errors` maps each recipient whose send raised to the error code it raised with; those
    recipients have no entry in `outcomes`.
    """

    outcomes: tuple[DeliveryOutcome, ...] = ()
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def recipient_count(self) -> int:
        return len(self.outcomes) + len(self.errors)

    @property
    def success_count(self) -> int:
        return sum(outcome.success_count for outcome in self.outcomes)

    @property
    def failure_count(self) -> int:
        return sum(outcome.failure_count for outcome in self.outcomes)

    @property
    def pruned_count(self) -> int:
        return sum(len(outcome.pruned_tokens) for outcome in self.outcomes)

    @property
    def warnings(self) -> tuple[str, ...]:
        return tuple(
            f"{outcome.recipient_id}: {warning}"
            for outcome in self.outcomes
            for warning in outcome.warnings
        )


class _SendTrace:
    """Track the per-call state machine and log each transition."""

    def __init__(self, recipient_id: str):
        self.recipient_id = recipient_id
        self.state: Optional[SendState] = None

    def advance(self, state: SendState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"send already finished in state {self.state.value}")
        logger.debug(
            "send %s: %s -> %s",
            self.recipient_id,
            self.state.value if self.state else "start",
            state.value,
            extra={"state": state.value},
        )
        self.state = state


class PushNotificationService:
    """Resolve → build → dispatch → classify → prune → report."""

    def __init__(
        self,
        resolver: RecipientResolver,
        payload_builder: PayloadBuilder,
        engine: DispatchEngine,
        pruner: TokenPruner,
        *,
        fanout_group_size: int = 10,
    ):
        self.resolver = resolver
        self.payload_builder = payload_builder
        self.engine = engine
        self.pruner = pruner
        self.fanout_group_size = max(fanout_group_size, 1)

    async def send(
        self,
        recipient_id: str,
        title: str,
        body: str,
        url: Optional[str] = None,
        icon: Optional[str] = None,
        notification_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> DeliveryOutcome:
        # Content is validated before the directory is touched; an invalid payload never
        # reaches the gateway whatever the recipient's state.
        validate_content(title, body)
        normalized = normalize_recipient_id(recipient_id)

        context = bind_request_context(recipient_id=normalized)
        try:
            return await self._send(
                normalized, title, body, url, icon, notification_type, entity_id
            )
        finally:
            reset_request_context(context)

    async def send_many(
        self,
        recipient_ids: Iterable[str],
        title: str,
        body: str,
        url: Optional[str] = None,
        icon: Optional[str] = None,
        notification_type: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> FanOutOutcome:
        """Send one payload to many recipients, `fanout_group_size` at a time.

        Each recipient goes through `send` independently: an unknown recipient or a gateway
        failure for one is recorded in `errors` and does not stop the others.
        """
        validate_content(title, body)
        distinct = unique_in_order(
            str(recipient_id).strip()
            for recipient_id in recipient_ids
            if recipient_id is not None and str(recipient_id).strip()
        )

        outcomes: list[DeliveryOutcome] = []
        errors: dict[str, str] = {}
        size = self.fanout_group_size
        for start in range(0, len(distinct), size):
            group = distinct[start : start + size]
            results = await asyncio.gather(
                *(
                    self.send(
                        recipient_id, title, body, url, icon, notification_type, entity_id
                    )
                    for recipient_id in group
                ),
                return_exceptions=True,
            )
            for recipient_id, result in zip(group, results):
                if isinstance(result, AppException):
                    errors[recipient_id] = result.error_code
                elif isinstance(result, BaseException):
                    raise result
                else:
                    outcomes.append(result)

        logger.info(
            "Fan-out to %d recipients: %d delivered, %d errors",
            len(distinct),
            len(outcomes),
            len(errors),
        )
        return FanOutOutcome(outcomes=tuple(outcomes), errors=errors)

    async def _send(
        self,
        recipient_id: str,
        title: str,
        body: str,
        url: Optional[str],
        icon: Optional[str],
        notification_type: Optional[str],
        entity_id: Optional[str],
    ) -> DeliveryOutcome:
        trace = _SendTrace(recipient_id)

        trace.advance(SendState.RESOLVING)
        try:
            snapshot = await self.resolver.resolve(recipient_id)
        except RecipientNotFoundException:
            trace.advance(SendState.NO_RECIPIENT)
            raise

        category = category_for_type(notification_type)
        if category in snapshot.muted_categories:
            trace.advance(SendState.SUPPRESSED)
            logger.info("Suppressed by recipient preference: %s", category.value)
            return DeliveryOutcome(recipient_id=recipient_id, state=SendState.SUPPRESSED)

        if not snapshot.has_devices:
            trace.advance(SendState.NO_DEVICES)
            logger.info("No devices registered for %s", recipient_id)
            return DeliveryOutcome(recipient_id=recipient_id, state=SendState.NO_DEVICES)

        trace.advance(SendState.BUILDING)
        payload = self.payload_builder.build(
            title, body, url, icon, notification_type, entity_id
        )

        trace.advance(SendState.DISPATCHING)
        results = await self.engine.dispatch(payload, snapshot.tokens)

        trace.advance(SendState.CLASSIFYING)
        classification = classify_results(results)
        logger.info(
            "Delivery for %s: %d sent, %d permanent, %d transient",
            recipient_id,
            classification.success_count,
            len(classification.permanent),
            len(classification.transient),
            extra={
                "success_count": classification.success_count,
                "failure_count": classification.failure_count,
            },
        )

        pruned, prune_failed, warnings = await self._prune(
            trace, recipient_id, classification
        )

        trace.advance(SendState.DONE)
        return DeliveryOutcome(
            recipient_id=recipient_id,
            state=SendState.DONE,
            success_count=classification.success_count,
            failure_count=classification.failure_count,
            pruned_tokens=pruned,
            transient_tokens=classification.transient,
            prune_failed=prune_failed,
            warnings=warnings,
        )

    async def _prune(
        self, trace: _SendTrace, recipient_id: str, classification: Classification
    ) -> tuple[tuple[str, ...], bool, tuple[str, ...]]:
        if not classification.permanent:
            return (), False, ()

        trace.advance(SendState.PRUNING)
        dead = tuple(sorted(set(classification.permanent) - set(classification.transient)))
        try:
            await self.pruner.prune(recipient_id, dead)
        except TokenPruneException as exc:
            # A dead token that survives fails again on the next send and is retried then.
            logger.warning("Token prune failed for %s: %s", recipient_id, exc.reason)
            if exc.reason == PRUNE_TIMEOUT_REASON:
                warning = (
                    f"pruning {len(dead)} dead tokens timed out; "
                    "they may or may not have been removed"
                )
            else:
                warning = f"{len(dead)} dead tokens could not be pruned"
            return (), True, (warning,)
        return dead, False, ()


__all__ = ["DeliveryOutcome", "FanOutOutcome", "PushNotificationService", "SendState"]
