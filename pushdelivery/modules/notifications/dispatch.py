"""Multicast dispatch to the push gateway.

The engine sends one payload to a set of tokens in a single batch call and maps the gateway's
per-token report onto `DispatchResult`s. Only failures that prove a token is dead are marked
permanent; everything else is transient and must never lead to pruning.
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging
from google.auth import exceptions as google_auth_exceptions

from pushdelivery.core.exceptions import (
    DispatchUnavailableException,
    InvalidPayloadException,
)

from .common import logger, run_blocking, unique_in_order
from .payloads import NotificationPayload, PayloadBuilder

# Tokens FCM will never accept again for this sender.
PERMANENT_ERRORS = (
    messaging.UnregisteredError,
    messaging.SenderIdMismatchError,
)


class PushGateway(Protocol):
    def send_multicast(self, message: messaging.MulticastMessage) -> messaging.BatchResponse:
        ...


class DispatchStatus(str, enum.Enum):
    SUCCESS = "success"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass(frozen=True)
class DispatchResult:
    token: str
    status: DispatchStatus
    reason: Optional[str] = None
    message_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is DispatchStatus.SUCCESS


def _error_reason(error: Exception) -> str:
    code = getattr(error, "code", None)
    name = type(error).__name__
    return f"{name}:{code}" if code else name


def is_permanent_failure(error: Optional[Exception]) -> bool:
    """True when the gateway error means the token can never receive notifications again."""
    if isinstance(error, PERMANENT_ERRORS):
        return True
    if isinstance(error, firebase_exceptions.InvalidArgumentError):
        # INVALID_ARGUMENT also covers malformed payloads; only a rejected token is permanent.
        return "registration token" in str(error).lower()
    return False


def result_from_response(token: str, response: messaging.SendResponse) -> DispatchResult:
    if response.success:
        return DispatchResult(
            token=token, status=DispatchStatus.SUCCESS, message_id=response.message_id
        )
    error = response.exception
    status = (
        DispatchStatus.PERMANENT_FAILURE
        if is_permanent_failure(error)
        else DispatchStatus.TRANSIENT_FAILURE
    )
    return DispatchResult(
        token=token,
        status=status,
        reason=_error_reason(error) if error else "unknown",
    )


class DispatchEngine:
    """Send a payload to a batch of tokens and report a per-token result."""

    def __init__(
        self,
        gateway: Optional[PushGateway],
        payload_builder: PayloadBuilder,
        *,
        timeout: float,
        max_batch_size: int = 500,
    ):
        self.gateway = gateway
        self.payload_builder = payload_builder
        self.timeout = timeout
        self.max_batch_size = max_batch_size

    def _batches(self, tokens: list[str]) -> list[list[str]]:
        size = self.max_batch_size
        return [tokens[i : i + size] for i in range(0, len(tokens), size)]

    def _send_all(
        self,
        payload: NotificationPayload,
        tokens: list[str],
        cancelled: threading.Event,
    ) -> list[DispatchResult]:
        results: list[DispatchResult] = []
        for batch in self._batches(tokens):
            # No batch goes out once the caller has seen the timeout.
            if cancelled.is_set():
                logger.warning(
                    "Dispatch deadline passed; %d tokens not sent", len(tokens) - len(results)
                )
                break
            try:
                message = self.payload_builder.to_message(payload, batch)
                response = self.gateway.send_multicast(message)
            except ValueError as exc:
                # Raised by the FCM message encoder before anything is sent.
                logger.warning("Gateway rejected the payload: %s", exc)
                raise InvalidPayloadException(
                    message=f"Notification payload rejected by the push gateway: {exc}"
                ) from exc
            except (
                firebase_exceptions.FirebaseError,
                google_auth_exceptions.GoogleAuthError,
            ) as exc:
                logger.error("Multicast batch could not be sent: %s", exc)
                raise DispatchUnavailableException(_error_reason(exc)) from exc

            responses = list(response.responses)
            if len(responses) != len(batch):
                raise DispatchUnavailableException(
                    f"gateway returned {len(responses)} results for {len(batch)} tokens"
                )
            results.extend(
                result_from_response(token, item) for token, item in zip(batch, responses)
            )
        return results

    async def dispatch(
        self, payload: NotificationPayload, tokens: Iterable[str]
    ) -> list[DispatchResult]:
        distinct = unique_in_order(token for token in tokens if token)
        if not distinct:
            return []
        if self.gateway is None:
            raise DispatchUnavailableException("push gateway is not configured")

        logger.info(
            "Dispatching to %d tokens", len(distinct), extra={"token_count": len(distinct)}
        )
        cancelled = threading.Event()
        return await run_blocking(
            self._send_all,
            payload,
            distinct,
            cancelled,
            timeout=self.timeout,
            stage="dispatch",
            cancelled=cancelled,
        )


__all__ = [
    "DispatchEngine",
    "DispatchResult",
    "DispatchStatus",
    "PushGateway",
    "is_permanent_failure",
    "result_from_response",
]
