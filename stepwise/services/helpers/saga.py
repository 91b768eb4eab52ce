"""
Saga runner — ordered (action, compensation) pairs without a transaction.

The storage layer gives single-statement atomicity only, so multi-table
sequences (fork, create-with-steps, replace-all steps) are expressed as a
list of steps. Steps run in order; when step *i* raises, the compensations
of the already-completed steps ``i-1 .. 1`` run in reverse and the triggering
exception is re-raised.

A step without a compensation is a point of no return for the steps before
it only in the sense that nothing is undone for *that* step; earlier steps
are still compensated.

Usage:
    saga = Saga("fork")
    saga.step("insert_project", insert, compensate=delete_project)
    saga.step("copy_steps", copy_steps)
    results = saga.run()          # {"insert_project": <return>, ...}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from stepwise.models import db

logger = logging.getLogger(__name__)


@dataclass
class SagaStep:
    name: str
    action: Callable[[dict], Any]
    compensate: Callable[[dict], None] | None = None


class Saga:
    """Runs steps in order; compensates completed steps in reverse on failure.

    Every action and compensation receives the shared ``results`` dict,
    keyed by step name, so later steps can read earlier return values.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.steps: list[SagaStep] = []
        self.completed: list[str] = []
        self.compensated: list[str] = []

    def step(
        self,
        name: str,
        action: Callable[[dict], Any],
        compensate: Callable[[dict], None] | None = None,
    ) -> "Saga":
        self.steps.append(SagaStep(name=name, action=action, compensate=compensate))
        return self

    def run(self) -> dict:
        results: dict[str, Any] = {}
        done: list[SagaStep] = []

        for saga_step in self.steps:
            try:
                results[saga_step.name] = saga_step.action(results)
            except Exception:
                logger.warning(
                    "Saga %s failed at step %s; compensating %d completed step(s)",
                    self.name, saga_step.name, len(done),
                )
                db.session.rollback()
                self._compensate(done, results)
                raise
            done.append(saga_step)
            self.completed.append(saga_step.name)
            logger.debug("Saga %s step %s done", self.name, saga_step.name)

        return results

    def _compensate(self, done: list[SagaStep], results: dict) -> None:
        for saga_step in reversed(done):
            if saga_step.compensate is None:
                continue
            try:
                saga_step.compensate(results)
                self.compensated.append(saga_step.name)
            except Exception:
                # Keep unwinding; the first failure is what the caller sees.
                db.session.rollback()
                logger.exception(
                    "Saga %s compensation for step %s failed",
                    self.name, saga_step.name,
                )
