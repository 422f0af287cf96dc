"""
Helmsman Tier Classifier

Pulls proposed actions out of free-form AI output and assigns each a risk
tier. Two fenced-block syntaxes are recognised:

  ```powershell / ```cmd / ```bash   literal commands, tier from classify_tier()
  ```helmsman-action                JSON {domain, intent, params, tier?, description?}

Tier rules for literal commands:
  GREEN  read-only verbs at the start of the command (listing, status, echo)
  RED    anything deleting, formatting, disabling or uninstalling
  YELLOW everything else

Green patterns are checked strictly before red ones, so a command matching
both is green.
"""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING

from helmsman.core.models import (
    Action,
    ActionModule,
    Tier,
    ToolOperationRequest,
    initial_status,
)
from helmsman.tools.registry import ACTION_BLOCK_TAG

if TYPE_CHECKING:
    from helmsman.storage.repository import ActionRepository

logger = logging.getLogger(__name__)


def _fence(tag: str) -> re.Pattern[str]:
    return re.compile(rf"```{re.escape(tag)}\r?\n(.*?)```", re.DOTALL)


# Shell fences in extraction order: (pattern, module)
SHELL_BLOCKS: tuple[tuple[re.Pattern[str], ActionModule], ...] = (
    (_fence("powershell"), ActionModule.POWERSHELL),
    (_fence("cmd"), ActionModule.CMD),
    (_fence("bash"), ActionModule.SHELL),
)

TOOL_ACTION_BLOCK = _fence(ACTION_BLOCK_TAG)

GREEN_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^Get-",
        r"^dir\b",
        r"^ls\b",
        r"^echo\b",
        r"^type\b",
        r"^cat\b",
        r"^hostname",
        r"^whoami",
        r"^ipconfig",
        r"^systeminfo",
        r"^tasklist",
    )
)

RED_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\brm\b",
        r"\bRemove-",
        r"\bdel\b",
        r"\bformat\b",
        r"\bfdisk\b",
        r"\bnet\s+user\b",
        r"\bnetsh\b.*\breset\b",
        r"\bregedit\b",
        r"\bSet-ExecutionPolicy\b",
        r"\bDisable-",
        r"\bStop-Service\b",
        r"\bUninstall-",
        r"\breg\s+(add|delete)\b",
        r"\bschtasks\b.*/delete\b",
    )
)


def classify_tier(command: str) -> Tier:
    """Classify a literal command. Ambiguous commands are yellow."""
    trimmed = command.strip()

    for pattern in GREEN_PATTERNS:
        if pattern.search(trimmed):
            return Tier.GREEN

    for pattern in RED_PATTERNS:
        if pattern.search(trimmed):
            return Tier.RED

    return Tier.YELLOW


def parse_tool_action(text: str) -> ToolOperationRequest | None:
    """Parse a structured tool-operation block leniently.

    Returns None for invalid JSON, a non-object payload, or a payload
    without both ``domain`` and ``intent``. Missing or unrecognised tiers
    default to yellow.
    """
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None

    if not isinstance(parsed, dict):
        return None

    domain = parsed.get("domain")
    intent = parsed.get("intent")
    if not domain or not intent or not isinstance(domain, str) or not isinstance(intent, str):
        return None

    raw_params = parsed.get("params") or {}
    params = (
        {str(k): str(v) for k, v in raw_params.items()} if isinstance(raw_params, dict) else {}
    )

    try:
        tier = Tier(parsed.get("tier") or Tier.YELLOW.value)
    except ValueError:
        tier = Tier.YELLOW

    description = parsed.get("description") or f"Tool operation: {domain}/{intent}"

    return ToolOperationRequest(
        domain=domain,
        intent=intent,
        params=params,
        tier=tier,
        description=str(description),
    )


def classify_and_extract_actions(
    ai_response: str,
    conversation_id: str | None,
    repository: ActionRepository,
) -> list[Action]:
    """Extract every action from one AI turn and persist it immediately.

    Not idempotent: calling this twice on the same text records the
    actions twice. Call it once per AI turn.
    """
    actions: list[Action] = []

    for match in TOOL_ACTION_BLOCK.finditer(ai_response):
        payload = match.group(1).strip()
        if not payload:
            continue

        request = parse_tool_action(payload)
        if request is None:
            logger.debug("Skipping malformed %s block", ACTION_BLOCK_TAG)
            continue

        actions.append(
            repository.insert(
                Action(
                    conversation_id=conversation_id,
                    tier=request.tier,
                    description=request.description,
                    command=payload,
                    module=ActionModule.TOOL_OPERATION.value,
                    status=initial_status(request.tier),
                )
            )
        )

    for pattern, module in SHELL_BLOCKS:
        for match in pattern.finditer(ai_response):
            command = match.group(1).strip()
            if not command:
                continue

            tier = classify_tier(command)
            actions.append(
                repository.insert(
                    Action(
                        conversation_id=conversation_id,
                        tier=tier,
                        description=f"Execute {module.value} command",
                        command=command,
                        module=module.value,
                        status=initial_status(tier),
                    )
                )
            )

    for action in actions:
        logger.info(
            "Recorded action: %s",
            action.description,
            extra={
                "action_id": action.id,
                "tier": action.tier.value,
                "status": action.status.value,
                "action_module": action.module,
            },
        )
    return actions
