"""
RizzedIn — AI persona conversation engine.

Each right swipe opens a chat between the swiper and an AI persona that
speaks for the swiped member.  The chat is a small state machine stored on
the ``Chat`` row:

    EMPTY ──send──▶ ACTIVE ──send (1-9)──▶ ACTIVE
                      │
                      └─10th send──▶ EVALUATING ──▶ TERMINAL

- Turns 1-9: the user's message is committed, then the persona replies.
- Turn 10: the full transcript is scored against a six-dimension rubric,
  the swiper's conversation rating is updated, an approved conversation
  creates the (idempotent) match, and a closing message is appended.
- Any send once the cap is reached fails with ``InvalidStateError`` and
  changes nothing.

Sends are serialised per chat through ``KeyedLock`` and the chat row is
selected ``FOR UPDATE`` so the tenth message is evaluated exactly once.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.chat import Chat, ChatState
from app.models.types import utcnow
from app.models.user import User
from app.services.elo_service import EloService
from app.services.evaluation_parser import (
    Evaluation,
    default_evaluation,
    parse_evaluation,
)
from app.services.exceptions import (
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    UpstreamUnavailableError,
)
from app.services.gemini_service import GeminiService
from app.services.match_service import MatchService
from app.utils.locks import KeyedLock, get_keyed_lock

logger = structlog.get_logger("rizzedin.chat_service")

MAX_MESSAGES_ERROR = "Maximum messages reached"

APPROVED_MESSAGE = (
    "I think we could be a great match! \U0001f4ab\n\n{reasoning}\n\n"
    "I'd love to connect on LinkedIn and continue our conversation!"
)
REJECTED_MESSAGE = (
    "Thank you for the conversation! {reasoning}\n\n"
    "I don't think we're quite the right match at this time, "
    "but I wish you the best! \U0001f64f"
)


# ──────────────────────────────────────────────────────────────────────────────
# Prompt construction
# ──────────────────────────────────────────────────────────────────────────────

def build_persona_prompt(user: Any, custom_prompt: str | None = None) -> str:
    """System instruction that makes the model speak as *user*."""
    name = user.name or "a professional"

    sections = [
        f"You are an AI persona representing {name} on a dating app called RizzedIn.",
        "Your profile details:\n"
        f"- Name: {user.name or 'Unknown'}\n"
        f"- Age: {user.age}\n"
        f"- Bio: {user.bio or 'No bio available'}\n"
        f"- About: {user.about or 'No detailed about section'}",
    ]

    experience = (user.experience or [])[:2]
    if experience:
        lines = []
        for exp in experience:
            line = f"- {exp.get('title')} at {exp.get('company')}"
            if exp.get("duration"):
                line += f" ({exp['duration']})"
            lines.append(line)
        sections.append("Work Experience:\n" + "\n".join(lines))

    education = (user.education or [])[:2]
    if education:
        lines = []
        for edu in education:
            line = f"- {edu.get('degree') or 'Studied'} at {edu.get('school')}"
            if edu.get("fieldOfStudy"):
                line += f" ({edu['fieldOfStudy']})"
            lines.append(line)
        sections.append("Education:\n" + "\n".join(lines))

    if custom_prompt:
        sections.append(f"Additional persona instructions:\n{custom_prompt}")

    sections.append(
        "Instructions:\n"
        "1. Respond as this person in a dating context - be friendly, "
        "interesting, and authentic\n"
        "2. Use the profile information to inform your responses\n"
        "3. Be conversational and engaging, but not overly eager\n"
        "4. Show personality and humor where appropriate\n"
        "5. After the 10th user message, you will evaluate if there's "
        "potential for a match"
    )
    sections.append(
        "Remember: You're trying to see if this person is a good match while "
        f"representing {user.name or 'the profile owner'}'s personality and interests."
    )
    return "\n\n".join(sections)


def build_evaluation_prompt(messages: list[dict]) -> str:
    """Transcript plus the rubric and decision policy for the scoring model."""
    transcript = "\n".join(
        f"{'User' if msg.get('role') == 'user' else 'You'}: {msg.get('content', '')}"
        for msg in messages
    )
    return f"""Based on this conversation, evaluate if this person would be a good match:

{transcript}

Score the user on each dimension from 1 (poor) to 10 (excellent):
- engagement: effort, curiosity and follow-up questions
- depth: substance beyond small talk
- authenticity: genuine, specific, not generic lines
- respectfulness: appropriate tone and boundaries
- compatibility: shared interests and values with your profile
- overall: overall chemistry

Decision policy: answer "approved" only if overall >= 7 AND compatibility >= 6,
otherwise answer "rejected".

Respond with ONLY a JSON object in this exact format:
{{
  "decision": "approved" or "rejected",
  "reasoning": "Brief explanation of your decision (1-2 sentences)",
  "rubric": {{
    "engagement": <1-10>,
    "depth": <1-10>,
    "authenticity": <1-10>,
    "respectfulness": <1-10>,
    "compatibility": <1-10>,
    "overall": <1-10>
  }}
}}"""


def final_message(evaluation: Evaluation) -> str:
    template = APPROVED_MESSAGE if evaluation.approved else REJECTED_MESSAGE
    return template.format(reasoning=evaluation.reasoning)


def _message(role: str, content: str) -> dict:
    return {"role": role, "content": content, "timestamp": utcnow().isoformat()}


# ──────────────────────────────────────────────────────────────────────────────
# Service
# ──────────────────────────────────────────────────────────────────────────────

class ChatService:
    """Drive persona conversations from first message to evaluation."""

    def __init__(
        self,
        gemini_service: GeminiService | None = None,
        elo_service: EloService | None = None,
        match_service: MatchService | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        settings = get_settings()
        self.max_user_messages: int = settings.CHAT_MAX_USER_MESSAGES
        self.persona_temperature: float = settings.PERSONA_TEMPERATURE
        self.evaluation_temperature: float = settings.EVALUATION_TEMPERATURE

        self._gemini = gemini_service
        self._elo = elo_service or EloService()
        self._matches = match_service or MatchService()
        self._locks = locks or get_keyed_lock()

    @property
    def gemini(self) -> GeminiService:
        if self._gemini is None:
            self._gemini = GeminiService()
        return self._gemini

    # ── Chat lookup / creation ──────────────────────────────────────

    async def get_or_create_chat(
        self,
        swiper_id: str,
        swiped_id: str,
        db_session: AsyncSession,
        new_session: bool = False,
    ) -> Chat:
        """Return the pair's latest chat, creating the first one if needed.

        With ``new_session`` a fresh chat is always started with the next
        session number (repeat practice runs and admin sessions).
        """
        for uid in (swiper_id, swiped_id):
            if await db_session.get(User, uid) is None:
                raise NotFoundError("User", uid)

        latest = await self._latest_session(swiper_id, swiped_id, db_session)
        if latest is not None and not new_session:
            return latest

        session_number = 0 if latest is None else latest.session_number + 1
        chat = Chat(
            swiper_id=swiper_id,
            swiped_id=swiped_id,
            session_number=session_number,
            messages=[],
            message_count=0,
            state=ChatState.EMPTY.value,
        )
        try:
            async with db_session.begin_nested():
                db_session.add(chat)
        except IntegrityError:
            # Another request opened this session first
            existing = await self._latest_session(swiper_id, swiped_id, db_session)
            logger.info("chat_create_raced", chat_id=str(existing.id))
            return existing

        await db_session.refresh(chat, attribute_names=["swiped_user"])
        logger.info(
            "chat_created",
            chat_id=str(chat.id),
            swiper_id=swiper_id,
            swiped_id=swiped_id,
            session_number=session_number,
        )
        return chat

    async def get_chat(self, chat_id: uuid.UUID, db_session: AsyncSession) -> Chat:
        chat = await db_session.get(Chat, chat_id, populate_existing=True)
        if chat is None:
            raise NotFoundError("Chat", chat_id)
        return chat

    async def list_user_chats(
        self, swiper_id: str, db_session: AsyncSession
    ) -> list[Chat]:
        """Chats started by *swiper_id*, newest first."""
        stmt = (
            select(Chat)
            .where(Chat.swiper_id == swiper_id)
            .order_by(Chat.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list((await db_session.execute(stmt)).scalars().all())

    # ── Sending ─────────────────────────────────────────────────────

    async def send_message(
        self,
        chat_id: uuid.UUID,
        sender_id: str,
        content: str,
        db_session: AsyncSession,
    ) -> dict:
        """Append the sender's message and produce the assistant's turn.

        Returns
        -------
        dict
            ``role``, ``content``, ``message_count``, ``state``,
            ``is_evaluation`` and, on the final turn, ``decision``.

        Raises
        ------
        NotFoundError
            Unknown chat or persona owner.
        UnauthorizedError
            The sender is not the chat's swiper.
        InvalidStateError
            The chat has reached its message cap.
        UpstreamUnavailableError
            The persona reply could not be generated.  The user's message
            remains stored.
        """
        log = logger.bind(chat_id=str(chat_id), sender_id=sender_id)

        async with self._locks.hold(f"chat:{chat_id}"):
            chat = await self._load_for_update(chat_id, db_session)

            if chat.swiper_id != sender_id:
                log.warning("send_message_unauthorized")
                raise UnauthorizedError("Only the chat's swiper can send messages")
            if (
                chat.message_count >= self.max_user_messages
                or chat.chat_state in (ChatState.EVALUATING, ChatState.TERMINAL)
            ):
                log.info("send_message_rejected", message_count=chat.message_count)
                raise InvalidStateError(MAX_MESSAGES_ERROR)

            persona = await db_session.get(User, chat.swiped_id)
            if persona is None:
                raise NotFoundError("User", chat.swiped_id)

            history = list(chat.messages or [])
            chat.messages = [*history, _message("user", content)]
            chat.message_count += 1

            if chat.message_count >= self.max_user_messages:
                chat.state = ChatState.EVALUATING.value
                await db_session.flush()
                log.info("chat_evaluating", message_count=chat.message_count)
                return await self._evaluate(chat, persona, db_session)

            chat.state = ChatState.ACTIVE.value
            await db_session.commit()
            log.info("user_message_stored", message_count=chat.message_count)

            try:
                reply = await self.gemini.generate(
                    content,
                    temperature=self.persona_temperature,
                    system_instruction=build_persona_prompt(
                        persona, persona.ai_persona_prompt
                    ),
                    history=history,
                )
            except UpstreamUnavailableError:
                log.error("persona_reply_failed", message_count=chat.message_count)
                raise

            chat.messages = [*chat.messages, _message("assistant", reply.strip())]
            await db_session.flush()

            return {
                "role": "assistant",
                "content": reply.strip(),
                "message_count": chat.message_count,
                "state": chat.state,
                "is_evaluation": False,
                "decision": None,
                "match_id": None,
            }

    # ── Evaluation ──────────────────────────────────────────────────

    async def _evaluate(
        self, chat: Chat, persona: User, db_session: AsyncSession
    ) -> dict:
        log = logger.bind(chat_id=str(chat.id))

        evaluation = await self._score_transcript(chat.messages)

        chat.ai_decision = evaluation.decision
        chat.ai_reasoning = evaluation.reasoning
        chat.ai_rubric = dict(evaluation.rubric)
        chat.evaluated_at = utcnow()

        async with self._locks.hold(f"user:{chat.swiper_id}"):
            swiper = await db_session.get(User, chat.swiper_id, with_for_update=True)
            if swiper is None:
                raise NotFoundError("User", chat.swiper_id)

            match_id = None
            if evaluation.approved:
                match, _created = await self._matches.create_match(
                    chat.swiper_id, chat.swiped_id, db_session, chat_id=chat.id
                )
                match_id = match.id

            self._elo.apply_conversation_result(
                swiper, persona, evaluation.rubric, evaluation.decision
            )

        closing = final_message(evaluation)
        chat.messages = [*chat.messages, _message("assistant", closing)]
        chat.state = ChatState.TERMINAL.value
        await db_session.flush()

        log.info(
            "chat_evaluated",
            decision=evaluation.decision,
            parsed=evaluation.parsed,
            overall=evaluation.rubric.get("overall"),
            match_id=str(match_id) if match_id else None,
        )
        return {
            "role": "assistant",
            "content": closing,
            "message_count": chat.message_count,
            "state": chat.state,
            "is_evaluation": True,
            "decision": evaluation.decision,
            "match_id": match_id,
        }

    async def _score_transcript(self, messages: list[dict]) -> Evaluation:
        try:
            text = await self.gemini.generate(
                build_evaluation_prompt(messages),
                temperature=self.evaluation_temperature,
                json_mode=True,
            )
        except UpstreamUnavailableError as exc:
            logger.warning("evaluation_model_unavailable", error=str(exc))
            return default_evaluation()
        return parse_evaluation(text)

    # ── Helpers ─────────────────────────────────────────────────────

    @staticmethod
    async def _load_for_update(chat_id: uuid.UUID, db_session: AsyncSession) -> Chat:
        stmt = (
            select(Chat)
            .where(Chat.id == chat_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        chat = (await db_session.execute(stmt)).scalar_one_or_none()
        if chat is None:
            raise NotFoundError("Chat", chat_id)
        return chat

    @staticmethod
    async def _latest_session(
        swiper_id: str, swiped_id: str, db_session: AsyncSession
    ) -> Chat | None:
        latest_number = (
            select(func.max(Chat.session_number))
            .where(Chat.swiper_id == swiper_id, Chat.swiped_id == swiped_id)
            .scalar_subquery()
        )
        stmt = select(Chat).where(
            Chat.swiper_id == swiper_id,
            Chat.swiped_id == swiped_id,
            Chat.session_number == latest_number,
        ).execution_options(populate_existing=True)
        return (await db_session.execute(stmt)).scalar_one_or_none()
