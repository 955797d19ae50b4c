"""Keyword routing of task text onto the agents currently online."""
from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from .models import AgentDescriptor, Message, RoutingRule, Strategy

logger = structlog.get_logger(__name__)

RouteDecision = Tuple[List[str], Strategy]


class Router:
    """Pure decision function over a configured rule set.

    ``route`` never mutates state, so calling it repeatedly with the same
    directory snapshot always yields the same decision.
    """

    def __init__(self) -> None:
        self._rules: Tuple[RoutingRule, ...] = ()
        self._default_agent: Optional[str] = None

    def configure(self, rules: Iterable[RoutingRule], default_agent: Optional[str] = None) -> None:
        """Replace the rule set and fallback agent wholesale."""
        # sorted() is stable: equal priorities keep configuration order.
        self._rules = tuple(sorted(rules, key=lambda rule: rule.priority, reverse=True))
        self._default_agent = default_agent or None
        logger.info(
            "router.configured",
            rules=[rule.name for rule in self._rules],
            default_agent=self._default_agent,
        )

    @property
    def rules(self) -> Tuple[RoutingRule, ...]:
        return self._rules

    @property
    def default_agent(self) -> Optional[str]:
        return self._default_agent

    def route(self, task_text: str, snapshot: Sequence[AgentDescriptor]) -> RouteDecision:
        online = [descriptor.agent_id for descriptor in snapshot if descriptor.is_online]
        online_set = set(online)

        for rule in self._rules:
            if not rule.matches(task_text):
                continue
            if rule.strategy == Strategy.BROADCAST and rule.agents:
                available = [agent_id for agent_id in rule.agents if agent_id in online_set]
                if available:
                    return self._decide(rule.name, available, Strategy.BROADCAST)
            elif rule.agent and rule.agent in online_set:
                return self._decide(rule.name, [rule.agent], Strategy.DIRECT)
            # Matched but every target is offline: keep scanning.
            logger.debug("router.rule_unavailable", rule=rule.name)

        if self._default_agent and self._default_agent in online_set:
            return self._decide("default", [self._default_agent], Strategy.DIRECT)

        if online:
            return self._decide("catch_all", online, Strategy.BROADCAST)

        return [], Strategy.DIRECT

    def route_message(self, message: Message, snapshot: Sequence[AgentDescriptor]) -> RouteDecision:
        return self.route(message.task_text, snapshot)

    @staticmethod
    def _decide(reason: str, agent_ids: List[str], strategy: Strategy) -> RouteDecision:
        logger.debug("router.decided", reason=reason, agents=agent_ids, strategy=strategy.value)
        return list(agent_ids), strategy
