"""Stage graph -- a small DAG executed tier by tier.

Stages with no unmet dependencies form a tier and run concurrently.
Each tier is a join barrier: every stage in it settles (result or
exception) before the next tier starts, and a stage only ever sees the
outputs of the stages it declared.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

StageFn = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class Stage:
    """One node: a name, the names it depends on, and the coroutine to run."""

    name: str
    depends_on: tuple[str, ...]
    run: StageFn


class StageFailed(Exception):
    """One or more stages in a tier failed; later tiers were not started."""

    def __init__(self, failures: dict[str, BaseException]) -> None:
        self.failures = failures
        self.stage, self.cause = next(iter(failures.items()))
        names = ", ".join(failures)
        super().__init__(f"Stage(s) failed: {names} ({self.cause!r})")


class StageGraph:
    """Validates a set of stages and runs them in dependency tiers."""

    def __init__(self, stages: list[Stage], stage_timeout: float | None = None) -> None:
        self._stages = {s.name: s for s in stages}
        if len(self._stages) != len(stages):
            raise ValueError("Duplicate stage names")
        for stage in stages:
            missing = [d for d in stage.depends_on if d not in self._stages]
            if missing:
                raise ValueError(f"Stage '{stage.name}' depends on unknown stage(s): {missing}")
        self._tiers = self._build_tiers()
        self._timeout = stage_timeout

    @property
    def tiers(self) -> list[list[str]]:
        return [list(t) for t in self._tiers]

    def _build_tiers(self) -> list[list[str]]:
        """Group stages by longest dependency path (Kahn's algorithm by levels)."""
        done: set[str] = set()
        remaining = list(self._stages)
        tiers: list[list[str]] = []

        while remaining:
            ready = [
                name for name in remaining
                if all(d in done for d in self._stages[name].depends_on)
            ]
            if not ready:
                raise ValueError(f"Dependency cycle among stages: {remaining}")
            tiers.append(ready)
            done.update(ready)
            remaining = [n for n in remaining if n not in done]

        return tiers

    async def run(self) -> dict[str, Any]:
        """Run every tier in order and return each stage's result by name.

        Raises StageFailed after the first tier that has a failure; the
        whole tier still settles before that happens.
        """
        results: dict[str, Any] = {}

        for level, tier in enumerate(self._tiers):
            logger.debug("Starting tier %d: %s", level, tier)
            outcomes = await asyncio.gather(
                *(self._run_stage(name, results) for name in tier),
                return_exceptions=True,
            )

            failures: dict[str, BaseException] = {}
            for name, outcome in zip(tier, outcomes):
                if isinstance(outcome, BaseException):
                    failures[name] = outcome
                else:
                    results[name] = outcome

            if failures:
                raise StageFailed(failures)

        return results

    async def _run_stage(self, name: str, results: dict[str, Any]) -> Any:
        stage = self._stages[name]
        upstream = {d: results[d] for d in stage.depends_on}
        if self._timeout is None:
            return await stage.run(upstream)
        return await asyncio.wait_for(stage.run(upstream), timeout=self._timeout)
