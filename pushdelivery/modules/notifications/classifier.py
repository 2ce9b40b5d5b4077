"""Partition dispatch results into successes, transient failures and dead tokens."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .dispatch import DispatchResult, DispatchStatus


@dataclass(frozen=True)
class Classification:
    permanent: tuple[str, ...]
    transient: tuple[str, ...]
    success_count: int

    @property
    def failure_count(self) -> int:
        return len(self.permanent) + len(self.transient)

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count


def classify_results(results: Iterable[DispatchResult]) -> Classification:
    """Pure partition; every result lands in exactly one bucket."""
    permanent: list[str] = []
    transient: list[str] = []
    success_count = 0
    for result in results:
        if result.status is DispatchStatus.SUCCESS:
            success_count += 1
        elif result.status is DispatchStatus.PERMANENT_FAILURE:
            permanent.append(result.token)
        else:
            transient.append(result.token)
    return Classification(
        permanent=tuple(permanent),
        transient=tuple(transient),
        success_count=success_count,
    )


__all__ = ["Classification", "classify_results"]
