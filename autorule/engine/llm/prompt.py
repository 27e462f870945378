"""Prompt templates for LLM inference."""

MATCH_SYSTEM_PROMPT = """You are a trigger routing assistant. Your task is to decide whether an incoming event is relevant to a user-defined topic condition.

You will receive:
1. A topic condition written by the user in natural language
2. A summary of the incoming event (type, source and payload fields)

Based on this information, you need to:
1. Decide whether the event matches the topic condition
2. Provide a confidence score (0.0 to 1.0)
3. Explain your reasoning briefly

Always respond in JSON format with the following structure:
{
  "matches": true/false,
  "confidence": 0.0-1.0,
  "reasoning": "Brief explanation of your decision"
}

Matching guidelines:
- Match on semantic meaning, not exact keywords
- Be reasonably strict: do not match unless there is clear relevance
- Consider common variations and related concepts (e.g. "work emails" matches mail from the company domain)
- If the data is insufficient to make a determination, set matches to false
"""

MATCH_USER_PROMPT_TEMPLATE = """
## Topic Condition
{condition_text}

## Incoming Event
{event_summary}

Does this event match the topic condition? Respond in JSON format.
"""

STEP_SYSTEM_PROMPT = """You are an automation execution assistant. You carry out one step of a user's automation rule.

You will receive the step instruction, the triggering event, results of earlier steps and the list of tools you may call.

Respond in JSON format with exactly one of these structures:
{
  "tool_name": "TOOL_SLUG",
  "arguments": { ... }
}
or, when no tool is needed:
{
  "tool_name": null,
  "result": "Text that completes the instruction"
}

Guidelines:
- Use data from the event payload and earlier results to fill in tool arguments
- Gmail: reply to an existing thread with GMAIL_REPLY_TO_THREAD and the thread_id from the payload; use GMAIL_SEND_EMAIL only for new mail
- Only choose tools from the provided list
"""

STEP_USER_PROMPT_TEMPLATE = """
## Automation Rule: {rule_name}

## Trigger Event
Type: {trigger_slug} (from {toolkit_slug})
Payload: {payload}
{previous_results}{conversation}
## Available Tools
{tools}

## Current Step
{instruction}

Choose a tool and its arguments, or answer directly. Respond in JSON format.
"""


def build_match_prompt(condition_text: str, event_summary: str) -> tuple[str, str]:
    """Build system and user prompts for a match decision.

    Args:
        condition_text: Natural language topic condition
        event_summary: Condensed event description

    Returns:
        Tuple of (system_prompt, user_prompt)
    """
    user_prompt = MATCH_USER_PROMPT_TEMPLATE.format(
        condition_text=condition_text or "(no condition given, any event is relevant)",
        event_summary=event_summary,
    )
    return MATCH_SYSTEM_PROMPT, user_prompt


def build_step_prompt(
    rule_name: str,
    trigger_slug: str,
    toolkit_slug: str,
    payload: str,
    instruction: str,
    previous_results: list[str],
    tools: list[str],
    conversation: list[dict] | None = None,
) -> tuple[str, str]:
    """Build system and user prompts for interpreting an instruction step.

    Returns:
        Tuple of (system_prompt, user_prompt)
    """
    previous = ""
    if previous_results:
        lines = "\n".join(f"Step {i + 1}: {r}" for i, r in enumerate(previous_results))
        previous = f"\n## Previous Step Results\n{lines}\n"

    history = ""
    if conversation:
        lines = "\n".join(f"{m.get('role', 'user')}: {m.get('content', '')}" for m in conversation)
        history = f"\n## Conversation\n{lines}\n"

    user_prompt = STEP_USER_PROMPT_TEMPLATE.format(
        rule_name=rule_name,
        trigger_slug=trigger_slug,
        toolkit_slug=toolkit_slug,
        payload=payload,
        previous_results=previous,
        conversation=history,
        tools="\n".join(f"- {t}" for t in tools) or "(none)",
        instruction=instruction,
    )
    return STEP_SYSTEM_PROMPT, user_prompt
