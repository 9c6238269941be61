"""Replay recorded conversations through the personalization service.

Each input line is one conversation::

    {"user_id": "u1", "turns": [{"role": "user", "content": "..."}, ...]}

Every user turn is processed as it would be live (memory extraction,
intimacy growth, periodic pattern refresh).  The report lists, per user, the
stored memories, the final pattern profile and the directive that would be
built for the last user utterance.  With ``--audit-log`` the state changes
are also written to an audit file and counted per user in the report.

Usage:
    uv run python scripts/replay_conversations.py \
      --input data/conversations.jsonl \
      --output reports/replay.json \
      --audit-log reports/replay_audit.jsonl
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections import Counter
from pathlib import Path

from pydantic import ValidationError

from rapport.audit import AuditLogger
from rapport.config import AuditConfig
from rapport.config import ServiceConfig
from rapport.memory import InMemoryConversationHistory
from rapport.memory import InMemoryIntimacyStore
from rapport.memory import InMemoryMemoryStore
from rapport.memory import InMemoryPatternProfileStore
from rapport.models.conversation import Conversation
from rapport.models.conversation import Role
from rapport.service import PersonalizationService

logger = logging.getLogger("rapport.replay")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--input", required=True)
    parser.add_argument("--output", default=None)
    parser.add_argument("--user", default=None, help="Only replay this user_id.")
    parser.add_argument("--refresh-every", type=int, default=5)
    parser.add_argument(
        "--audit-log",
        default=None,
        help="Write audit events to this JSONL file and count them per user.",
    )
    return parser.parse_args(argv)


def _load_conversations(path: Path, *, user: str | None = None) -> list[Conversation]:
    conversations: list[Conversation] = []
    with path.open("r", encoding="utf-8") as handle:
        for line_no, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                conversation = Conversation.model_validate_json(line)
            except ValidationError as exc:
                logger.warning("skipping line %d: %s", line_no, exc.errors()[0]["msg"])
                continue
            if conversation.user_id is None:
                logger.warning("skipping line %d: missing user_id", line_no)
                continue
            if user is not None and conversation.user_id != user:
                continue
            conversations.append(conversation)
    return conversations


async def replay(
    conversations: list[Conversation],
    *,
    refresh_every: int = 5,
    audit_log: str | None = None,
) -> dict[str, dict]:
    """Feed *conversations* through a fresh in-memory service."""
    audit = AuditLogger(
        AuditConfig(file_path=audit_log, enabled=True)
        if audit_log
        else AuditConfig(enabled=False)
    )
    history = InMemoryConversationHistory()
    memory_store = InMemoryMemoryStore()
    service = PersonalizationService(
        memory_store,
        InMemoryIntimacyStore(),
        InMemoryPatternProfileStore(),
        history,
        config=ServiceConfig(refresh_every_user_turns=refresh_every),
        audit_logger=audit,
    )

    last_utterance: dict[str, str] = {}
    for conversation in conversations:
        await history.save(conversation)
        for index, turn in enumerate(conversation.turns):
            if turn.role != Role.user:
                continue
            await service.process_turn(
                conversation.user_id, turn.content, conversation.turns[:index]
            )
            last_utterance[conversation.user_id] = turn.content

    report: dict[str, dict] = {}
    for user_id, utterance in sorted(last_utterance.items()):
        profile = await service.refresh_patterns(user_id)
        directive = await service.build_directive(user_id, utterance)
        memories = await memory_store.query(user_id, await memory_store.count(user_id))
        report[user_id] = {
            "conversations": sum(1 for c in conversations if c.user_id == user_id),
            "intimacy": await service.intimacy.get(user_id),
            "memories": [
                {
                    "category": m.category.value,
                    "key": m.key,
                    "value": m.value,
                    "importance": m.importance,
                    "mention_count": m.mention_count,
                }
                for m in memories
            ],
            "profile": (
                profile.model_dump(mode="json", exclude={"user_id"})
                if profile is not None
                else None
            ),
            "directive": {
                "strategy": directive.strategy.value,
                "tier": directive.tier.value,
                "text": directive.text,
            },
        }
        if audit.config.enabled:
            events = await audit.read_events(user_id=user_id)
            report[user_id]["audit_events"] = dict(
                sorted(Counter(e.event_type.value for e in events).items())
            )
    return report


async def _main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s %(message)s")
    args = _parse_args(argv)
    input_path = Path(args.input)
    if not input_path.exists():
        logger.error("input not found: %s", input_path)
        return 2

    conversations = _load_conversations(input_path, user=args.user)
    report = await replay(
        conversations, refresh_every=args.refresh_every, audit_log=args.audit_log
    )

    payload = json.dumps(report, indent=2, sort_keys=True, ensure_ascii=False)
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(payload + "\n", encoding="utf-8")
    print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(_main()))
