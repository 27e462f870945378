"""LLM-backed interpreter for instruction steps."""

import json
from typing import Any

from openai import AsyncOpenAI

from autorule.actions.provider import ActionProvider
from autorule.core.config import get_settings
from autorule.core.exceptions import DecisionError
from autorule.core.logging import get_logger
from autorule.engine.executor import StepContext
from autorule.engine.llm.engine import create_llm_client
from autorule.engine.llm.parser import parse_tool_choice
from autorule.engine.llm.prompt import build_step_prompt

logger = get_logger(__name__)


class LLMStepInterpreter:
    """Asks the model to pick a tool and its arguments, then runs it."""

    def __init__(
        self,
        action_provider: ActionProvider,
        client: AsyncOpenAI | None = None,
    ):
        self._settings = get_settings()
        self._actions = action_provider
        self._client = client or create_llm_client()

    async def close(self) -> None:
        await self._client.close()

    async def interpret(self, instruction: str, context: StepContext) -> Any:
        """Interpret one instruction step.

        Returns:
            The tool's result data, or the model's text when no tool was needed

        Raises:
            DecisionError: If the model is unreachable or picks an unknown tool
            ActionExecutionError: If the chosen tool fails
        """
        tools = await self._actions.list_tools(context.user_id)
        event = context.event

        system_prompt, user_prompt = build_step_prompt(
            rule_name=context.rule.name,
            trigger_slug=event.trigger_slug,
            toolkit_slug=event.toolkit_slug,
            payload=json.dumps(event.payload, ensure_ascii=False, default=str),
            instruction=instruction,
            previous_results=context.successful_results(),
            tools=tools,
            conversation=context.conversation_history,
        )

        try:
            response = await self._client.chat.completions.create(
                model=self._settings.openai_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=0.1,
            )
        except Exception as e:
            raise DecisionError(f"LLM service error: {e}") from e

        choice = parse_tool_choice(response.choices[0].message.content or "")

        if choice.tool_name is None:
            logger.debug("Instruction answered without a tool", rule_id=context.rule.id)
            return choice.result or "Step completed"

        if tools and choice.tool_name not in tools:
            raise DecisionError(
                f"Model chose unavailable tool '{choice.tool_name}'",
                {"tool_name": choice.tool_name},
            )

        logger.info(
            "Instruction mapped to tool",
            rule_id=context.rule.id,
            step_index=context.step_index,
            tool_name=choice.tool_name,
        )
        return await self._actions.execute(choice.tool_name, choice.arguments, context.user_id)
