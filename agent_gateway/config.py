"""Configuration management for the gateway."""
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from agent_gateway.core.models import RoutingRule, Strategy


@dataclass(frozen=True)
class AzureOpenAIConfig:
    """Azure OpenAI service configuration."""

    api_key: str
    endpoint: str
    api_version: str = "2024-02-15-preview"
    deployment_name: str = "gpt-4"
    max_concurrent: int = 50


class RoutingRuleSettings(BaseModel):
    """Validated shape of one routing rule supplied through the environment."""

    name: str
    keywords: List[str] = Field(min_length=1)
    priority: int = 0
    strategy: Literal["direct", "broadcast"] = "direct"
    agent: Optional[str] = None
    agents: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_targets(self) -> RoutingRuleSettings:
        if self.strategy == "broadcast" and not (self.agents or self.agent):
            raise ValueError(f"broadcast rule {self.name!r} needs 'agents'")
        if self.strategy == "direct" and not self.agent:
            raise ValueError(f"direct rule {self.name!r} needs 'agent'")
        return self

    def to_rule(self) -> RoutingRule:
        return RoutingRule(
            name=self.name,
            keywords=tuple(self.keywords),
            priority=self.priority,
            strategy=Strategy(self.strategy),
            agent=self.agent,
            agents=tuple(self.agents),
        )


class ProcessAgentSettings(BaseModel):
    """A CLI agent launched as a subprocess for each task."""

    id: str
    command: str
    name: str = ""
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    capabilities: List[str] = Field(default_factory=list)
    timeout: float = 300.0


_RULES_ADAPTER = TypeAdapter(List[RoutingRuleSettings])
_PROCESS_AGENTS_ADAPTER = TypeAdapter(List[ProcessAgentSettings])


def parse_routing_rules(raw: str) -> Tuple[RoutingRule, ...]:
    """Parse a JSON list of rule objects; raises ``pydantic.ValidationError``."""
    if not raw.strip():
        return ()
    return tuple(item.to_rule() for item in _RULES_ADAPTER.validate_python(json.loads(raw)))


def parse_process_agents(raw: str) -> Tuple[ProcessAgentSettings, ...]:
    if not raw.strip():
        return ()
    return tuple(_PROCESS_AGENTS_ADAPTER.validate_python(json.loads(raw)))


@dataclass(frozen=True)
class Config:
    """Application configuration loaded from environment variables."""

    azure_openai: Optional[AzureOpenAIConfig] = None
    environment: str = "development"
    log_level: str = "INFO"
    data_dir: str = "./data/spaces"
    default_agent: Optional[str] = None
    routing_rules: Tuple[RoutingRule, ...] = ()
    process_agents: Tuple[ProcessAgentSettings, ...] = ()
    enable_index: bool = True
    echo_agents: Tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables."""
        azure_key = os.getenv("AZURE_OPENAI_KEY")
        azure_endpoint = os.getenv("AZURE_OPENAI_ENDPOINT")

        azure_config = None
        if azure_key and azure_endpoint:
            azure_config = AzureOpenAIConfig(
                api_key=azure_key,
                endpoint=azure_endpoint,
                api_version=os.getenv("AZURE_OPENAI_API_VERSION", "2024-02-15-preview"),
                deployment_name=os.getenv("AZURE_OPENAI_DEPLOYMENT", "gpt-4"),
                max_concurrent=int(os.getenv("AZURE_OPENAI_MAX_CONCURRENT", "50")),
            )

        echo_agents = os.getenv("GATEWAY_ECHO_AGENTS", "")
        return cls(
            azure_openai=azure_config,
            environment=os.getenv("ENVIRONMENT", "development"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            data_dir=os.getenv("GATEWAY_DATA_DIR", "./data/spaces"),
            default_agent=os.getenv("GATEWAY_DEFAULT_AGENT") or None,
            routing_rules=parse_routing_rules(os.getenv("GATEWAY_ROUTING_RULES", "")),
            process_agents=parse_process_agents(os.getenv("GATEWAY_PROCESS_AGENTS", "")),
            enable_index=os.getenv("GATEWAY_ENABLE_INDEX", "1").lower() not in ("0", "false", "no"),
            echo_agents=tuple(a.strip() for a in echo_agents.split(",") if a.strip()),
        )
