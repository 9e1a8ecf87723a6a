"""Agent registry: loads agent definitions from YAML files.

- YAML-per-file in definitions/ directory
- Lazy loading with _loaded guard
- In-memory dict keyed by agent_id
- Global singleton via get_agent_registry()

Read-only: definitions are shipped with the package and edited by hand.
A definition that fails validation aborts the whole load with
AgentConfigError; there is no partially loaded registry.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from lifepath.agents.schemas import AgentConfig, AgentSummary
from lifepath.errors import AgentConfigError, AgentNotFoundError

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Registry of agent definitions loaded from YAML files."""

    def __init__(self, definitions_dir: Optional[Path] = None):
        if definitions_dir is None:
            definitions_dir = Path(__file__).parent / "definitions"
        self.definitions_dir = Path(definitions_dir)
        self._agents: dict[str, AgentConfig] = {}
        self._initial_agent_id: Optional[str] = None
        self._loaded = False

    def load(self) -> None:
        """Load and validate all agent definitions."""
        if self._loaded:
            return

        if not self.definitions_dir.exists():
            raise AgentConfigError(
                f"Agent definitions directory not found: {self.definitions_dir}"
            )

        agents: dict[str, AgentConfig] = {}
        for yaml_file in sorted(self.definitions_dir.glob("*.yaml")):
            agent = self._load_file(yaml_file)
            if agent.agent_id in agents:
                raise AgentConfigError(
                    f"Duplicate agent_id '{agent.agent_id}' in {yaml_file.name}"
                )
            agents[agent.agent_id] = agent
            logger.debug(f"Loaded agent: {agent.agent_id}")

        self._validate(agents)

        self._agents = agents
        self._initial_agent_id = next(a.agent_id for a in agents.values() if a.entry_point)
        self._loaded = True
        logger.info(
            f"Loaded {len(self._agents)} agents "
            f"(initial: {self._initial_agent_id})"
        )

    @staticmethod
    def _load_file(yaml_file: Path) -> AgentConfig:
        try:
            with open(yaml_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise AgentConfigError(f"Invalid YAML in {yaml_file.name}: {e}") from e

        if not isinstance(data, dict):
            raise AgentConfigError(f"{yaml_file.name} must contain a mapping")

        try:
            return AgentConfig.model_validate(data)
        except ValidationError as e:
            raise AgentConfigError(f"Invalid agent definition {yaml_file.name}: {e}") from e

    @staticmethod
    def _validate(agents: dict[str, AgentConfig]) -> None:
        """Cross-definition checks. Per-definition checks run in AgentConfig."""
        entry_points = [a.agent_id for a in agents.values() if a.entry_point]
        if len(entry_points) != 1:
            raise AgentConfigError(
                f"Exactly one agent must be the entry point, found {len(entry_points)}"
                + (f": {', '.join(entry_points)}" if entry_points else "")
            )

        for agent in agents.values():
            for rule in agent.next_agent_rules:
                if rule.next_agent_id is not None and rule.next_agent_id not in agents:
                    raise AgentConfigError(
                        f"Agent '{agent.agent_id}' has a rule pointing at "
                        f"unknown agent '{rule.next_agent_id}'"
                    )
            if agent.end_condition and agent.end_condition.collection is not agent.output_field:
                raise AgentConfigError(
                    f"Agent '{agent.agent_id}' end condition watches "
                    f"'{agent.end_condition.collection.value}' but writes "
                    f"'{agent.output_field.value}'"
                )

    def get_agent_config(self, agent_id: str) -> AgentConfig:
        """Get an agent by id. Raises AgentNotFoundError."""
        self.load()
        try:
            return self._agents[agent_id]
        except KeyError:
            raise AgentNotFoundError(agent_id) from None

    def get_initial_agent(self) -> AgentConfig:
        """The agent every new session starts with."""
        self.load()
        return self._agents[self._initial_agent_id]

    def list_agents(self) -> list[AgentConfig]:
        self.load()
        return list(self._agents.values())

    def list_summaries(self) -> list[AgentSummary]:
        self.load()
        return [
            AgentSummary(
                agent_id=a.agent_id,
                name=a.name,
                kind=a.kind,
                output_field=a.output_field,
                requires_user_input=a.requires_user_input,
                entry_point=a.entry_point,
            )
            for a in sorted(self._agents.values(), key=lambda a: a.agent_id)
        ]

    def list_keys(self) -> list[str]:
        self.load()
        return sorted(self._agents.keys())

    def count(self) -> int:
        self.load()
        return len(self._agents)

    def reload(self) -> None:
        """Force reload all definitions."""
        self._loaded = False
        self._agents = {}
        self._initial_agent_id = None
        self.load()


# Global registry instance
_registry: Optional[AgentRegistry] = None


def get_agent_registry() -> AgentRegistry:
    """Get the global agent registry instance."""
    global _registry
    if _registry is None:
        _registry = AgentRegistry()
        _registry.load()
    return _registry
