"""
Evaluation Interstitial
=======================
The "evaluating your profile" screen shown between step 2 and the next
step. It is a fixed-duration sequence of staged messages followed by one
completion callback that performs the pending transition.

The user cannot skip it. The owning task can still be cancelled when the
session is torn down (e.g. the page unmounts).
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, TypeVar, Union

import structlog

from schemas.form_definitions import (
    AnswerSet,
    FlowStep,
    InterstitialKind,
    InterstitialPlan,
    InterstitialStage,
)

logger = structlog.get_logger().bind(component="interstitial")

T = TypeVar("T")

DEFAULT_TOTAL_SECONDS = 10.0


def _evaluation_messages(answers: AnswerSet) -> List[str]:
    if answers.is_masters:
        return [
            "Analyzing your profile and program fit",
            "Processing graduate admission criteria",
            "Connecting you with our Beacon House admission experts",
        ]
    return [
        "Analyzing your academic profile and curriculum fit",
        "Processing admission criteria and program compatibility",
        "Connecting you with our Beacon House admission experts",
    ]


NURTURE_MESSAGES = [
    "Analyzing your profile and target university fitment",
    "Evaluating scholarship and funding opportunities",
    "Building your optimal admissions pathway",
]


def build_plan(
    kind: InterstitialKind,
    answers: AnswerSet,
    total_seconds: float = DEFAULT_TOTAL_SECONDS,
) -> InterstitialPlan:
    """Split the total duration evenly across the staged messages."""
    if kind == InterstitialKind.EVALUATION:
        messages = _evaluation_messages(answers)
        target = FlowStep.COUNSELLING
    else:
        messages = NURTURE_MESSAGES
        target = FlowStep.EXTENDED_NURTURE

    per_stage = max(0.0, total_seconds) / len(messages)
    return InterstitialPlan(
        kind=kind,
        target_step=target,
        stages=[InterstitialStage(message=m, duration_seconds=per_stage) for m in messages],
    )


class InterstitialRunner:
    """Plays an InterstitialPlan to completion, then fires its callback."""

    def __init__(self, sleep: Optional[Callable[[float], Awaitable[None]]] = None):
        self._sleep = sleep or asyncio.sleep

    async def run(
        self,
        plan: InterstitialPlan,
        on_complete: Callable[[], Union[T, Awaitable[T]]],
    ) -> T:
        for index, stage in enumerate(plan.stages, start=1):
            logger.info(
                "interstitial_stage",
                kind=plan.kind.value,
                stage=index,
                of=len(plan.stages),
                message=stage.message,
            )
            await self._sleep(stage.duration_seconds)

        result = on_complete()
        if asyncio.iscoroutine(result):
            result = await result
        logger.info("interstitial_complete", kind=plan.kind.value, target_step=plan.target_step.value)
        return result

    def start(
        self,
        plan: InterstitialPlan,
        on_complete: Callable[[], Union[T, Awaitable[T]]],
    ) -> "asyncio.Task[T]":
        """Schedule the plan on the running loop; cancel the task to tear down."""
        return asyncio.ensure_future(self.run(plan, on_complete))


__all__ = [
    "DEFAULT_TOTAL_SECONDS",
    "NURTURE_MESSAGES",
    "build_plan",
    "InterstitialRunner",
]
