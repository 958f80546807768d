# app/services/intents.py
import json, logging, re
from typing import Any, Callable, Dict, List, Optional, Protocol
from uuid import uuid4

from openai import AsyncOpenAI
from sqlalchemy import text as sqltext, bindparam
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.types import String

log = logging.getLogger(__name__)

SAMPLE_FRAGMENTS = 50
MIN_CONTENT_CHARS = 100
MAX_PROMPT_CHARS = 8000
MAX_INTENTS = 10


class IntentHook(Protocol):
    async def on_ingestion_complete(self, chatbot_id: str) -> None: ...


async def run_intent_hook(hook: Optional[IntentHook], chatbot_id: str) -> None:
    """Best-effort: ingestion has already succeeded, a failing hook only logs."""
    if hook is None:
        return
    try:
        await hook.on_ingestion_complete(chatbot_id)
    except Exception as e:
        log.warning(f"[INTENT] detection failed for chatbot={chatbot_id}: {e!r}")


SYSTEM_PROMPT = (
    "You analyze knowledge-base content and identify what visitors want. "
    "Return ONLY a JSON array, no prose. Each item: "
    "{name:string, description:string, examples:string[]}. "
    "5-10 distinct, actionable intents specific to the content; "
    "name short and clear; description 1-2 sentences; 3-5 examples of trigger phrases. "
    "Avoid generic intents like 'General Question'."
)

def sample_content(content: str, limit: int = MAX_PROMPT_CHARS) -> str:
    """Beginning, middle and end of long content."""
    if len(content) <= limit:
        return content
    part = limit // 3
    mid = len(content) // 2
    return "\n\n[...]\n\n".join([
        content[:part],
        content[mid - part // 2: mid + part // 2],
        content[-part:],
    ])

def parse_intents(raw: str, limit: int = MAX_INTENTS) -> List[Dict[str, Any]]:
    text = (raw or "").strip().strip("` \n")
    if text.startswith("json"):
        text = text[4:].strip(": \n`")
    m = re.search(r"\[.*\]", text, re.S)
    if m:
        text = m.group(0)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        log.warning(f"[INTENT] WARN parsing intents JSON: {e!r}")
        return []
    if not isinstance(data, list):
        return []

    out = []
    for item in data:
        if not isinstance(item, dict) or not str(item.get("name") or "").strip():
            continue
        examples = item.get("examples") or item.get("keywords") or []
        out.append({
            "name": str(item["name"]).strip(),
            "description": str(item.get("description") or "").strip(),
            "examples": [str(x) for x in examples if str(x).strip()],
        })
    return out[:limit]


class IntentDetector:
    """Derives chatbot intents from freshly ingested fragments and replaces the stored set."""

    def __init__(self, session_factory: Callable[[], AsyncSession], client: AsyncOpenAI, model: str = "gpt-4o-mini"):
        self.session_factory = session_factory
        self.client = client
        self.model = model

    async def on_ingestion_complete(self, chatbot_id: str) -> None:
        async with self.session_factory() as session:
            rows = (await session.execute(sqltext("""
                select content from public.document_chunks
                 where chatbot_id = :chat
                 order by chunk_index asc
                 limit :lim
            """), {"chat": str(chatbot_id), "lim": SAMPLE_FRAGMENTS})).scalars().all()

            content = "\n\n".join(r for r in rows if r)
            if len(content) < MIN_CONTENT_CHARS:
                log.info(f"[INTENT] chatbot={chatbot_id} has too little content, skipping")
                return

            intents = await self.detect(content)
            if not intents:
                log.info(f"[INTENT] chatbot={chatbot_id} no intents detected")
                return

            await session.execute(
                sqltext("delete from public.chatbot_intents where chatbot_id = :chat"),
                {"chat": str(chatbot_id)},
            )
            stmt = sqltext("""
                insert into public.chatbot_intents (id, chatbot_id, name, description, examples)
                values (:id, :chat, :name, :descr, CAST(:ex AS jsonb))
            """).bindparams(bindparam("ex", type_=String))
            await session.execute(stmt, [{
                "id": str(uuid4()),
                "chat": str(chatbot_id),
                "name": it["name"],
                "descr": it["description"],
                "ex": json.dumps(it["examples"]),
            } for it in intents])
            await session.commit()
            log.info(f"[INTENT] chatbot={chatbot_id} stored {len(intents)} intents")

    async def detect(self, content: str) -> List[Dict[str, Any]]:
        resp = await self.client.chat.completions.create(
            model=self.model,
            temperature=0.2,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": "Content to analyze:\n" + sample_content(content)},
            ],
        )
        return parse_intents(resp.choices[0].message.content or "")
