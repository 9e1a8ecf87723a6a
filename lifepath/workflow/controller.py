"""Workflow controller: decides what runs after an agent.

    next(agent_id, session, user_just_acted) -> Transition

Evaluation order:
1. End condition (decision-point agents only): the output collection has
   reached its ceiling, or its latest item is flagged terminal -> ENDED.
   This overrides every rule.
2. The agent requires user input and the user has not acted -> PAUSED.
3. Rules in declared order: the first `always` rule, or `user_selection`
   rule when the user just acted, wins. `end_condition` rules are skipped
   (step 1 handled them). A winning rule without a target -> ENDED.
   No winning rule -> ENDED.

The answer depends on session content, so the same (agent, signal) pair can
give different transitions as the session grows.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from lifepath.agents.schemas import AgentConfig, RuleCondition

logger = logging.getLogger(__name__)


class TransitionKind(str, Enum):
    NEXT = "next"
    PAUSED = "paused"
    ENDED = "ended"


class EndReason:
    MAX_MOMENTS = "max_moments"
    DEATH = "death"
    WORKFLOW_COMPLETE = "workflow_complete"
    NO_MATCHING_RULE = "no_matching_rule"


@dataclass(frozen=True)
class Transition:
    kind: TransitionKind
    agent_id: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def next(cls, agent_id: str) -> "Transition":
        return cls(TransitionKind.NEXT, agent_id=agent_id)

    @classmethod
    def paused(cls) -> "Transition":
        return cls(TransitionKind.PAUSED, reason="awaiting_user_input")

    @classmethod
    def ended(cls, reason: str) -> "Transition":
        return cls(TransitionKind.ENDED, reason=reason)

    @property
    def is_terminal(self) -> bool:
        """True when nothing runs next, whether paused or ended."""
        return self.kind is not TransitionKind.NEXT


def end_condition_met(agent: AgentConfig, session: dict[str, Any]) -> Optional[str]:
    """End reason if the agent's end condition holds, else None."""
    condition = agent.end_condition
    if condition is None:
        return None

    items = session.get(condition.collection.value) or []
    config = session.get("config") or {}
    ceiling = config.get(condition.ceiling_config_key) or condition.default_ceiling
    if len(items) >= ceiling:
        return EndReason.MAX_MOMENTS

    if condition.terminal_flag and items:
        last = items[-1]
        if isinstance(last, dict) and last.get(condition.terminal_flag):
            return EndReason.DEATH
    return None


class WorkflowController:
    """Branching over the agents in a registry."""

    def __init__(self, registry):
        self.registry = registry

    def next(
        self,
        current_agent_id: str,
        session: dict[str, Any],
        user_just_acted: bool = False,
    ) -> Transition:
        agent = self.registry.get_agent_config(current_agent_id)
        transition = self._decide(agent, session, user_just_acted)
        logger.debug(
            f"[{current_agent_id}] user_just_acted={user_just_acted} -> "
            f"{transition.kind.value} {transition.agent_id or transition.reason}"
        )
        return transition

    @staticmethod
    def _decide(
        agent: AgentConfig, session: dict[str, Any], user_just_acted: bool
    ) -> Transition:
        reason = end_condition_met(agent, session)
        if reason:
            return Transition.ended(reason)

        if agent.requires_user_input and not user_just_acted:
            return Transition.paused()

        for rule in agent.next_agent_rules:
            if rule.condition is RuleCondition.END_CONDITION:
                continue
            if rule.condition is RuleCondition.ALWAYS or (
                rule.condition is RuleCondition.USER_SELECTION and user_just_acted
            ):
                if rule.next_agent_id is None:
                    return Transition.ended(EndReason.WORKFLOW_COMPLETE)
                return Transition.next(rule.next_agent_id)

        return Transition.ended(EndReason.NO_MATCHING_RULE)
