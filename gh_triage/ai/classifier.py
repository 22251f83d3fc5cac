"""Structured-output LLM client built on PydanticAI agents."""

import logging
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic_ai import Agent
from pydantic_ai.exceptions import UnexpectedModelBehavior

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=BaseModel)

CLASSIFIER_INSTRUCTIONS = (
    "You analyze GitHub issues for repository maintainers. "
    "Only reference issue numbers that appear in the prompt."
)


class LLMClassifier:
    """Send a prompt and get back a response validated against a model.

    Retries and validation are delegated to PydanticAI; this client only
    reports whether a valid result was produced.
    """

    def __init__(
        self,
        model: str,
        retries: int = 2,
        model_settings: dict[str, Any] | None = None,
    ):
        """Initialize the classifier.

        Args:
            model: Model identifier in provider:name format
                (e.g., 'anthropic:claude-sonnet-4-20250514')
            retries: Output validation retries per request
            model_settings: Optional provider settings (temperature, ...)
        """
        self.model = model
        self.retries = retries
        self.model_settings = model_settings
        self._agents: dict[type[BaseModel], Agent[None, Any]] = {}

    def agent_for(self, response_model: type[ResponseT]) -> Agent[None, ResponseT]:
        """Lazily build and cache one agent per response model."""
        agent = self._agents.get(response_model)
        if agent is None:
            agent = Agent(
                self.model,
                output_type=response_model,
                instructions=CLASSIFIER_INSTRUCTIONS,
                retries=self.retries,
            )
            self._agents[response_model] = agent
        return agent  # type: ignore[return-value]

    async def analyze(
        self, prompt: str, response_model: type[ResponseT]
    ) -> ResponseT | None:
        """Run ``prompt`` and validate the answer against ``response_model``.

        Returns:
            The validated response, or None if the model never produced
            output matching the schema
        """
        agent = self.agent_for(response_model)
        kwargs: dict[str, Any] = {}
        if self.model_settings:
            kwargs["model_settings"] = self.model_settings

        try:
            result = await agent.run(prompt, **kwargs)
        except UnexpectedModelBehavior as e:
            logger.warning(
                "No valid %s from %s: %s", response_model.__name__, self.model, e
            )
            return None

        output: ResponseT = result.output
        return output
