"""Gathers a user's past posts, training documents and context guide for voice analysis."""

import asyncio
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cocreate.config import get_settings
from cocreate.models.content import PastPost, TrainingDocument, UserPreferences
from cocreate.schemas.generation import PastPostSample, TrainingDocSample, VoiceSources

logger = logging.getLogger(__name__)

# Placeholders stored when text extraction did not work
EXTRACTION_FAILURE_MARKERS = (
    "[PDF content - text extraction not available]",
    "[Word document content - text extraction not available]",
    "[Content extraction failed",
)
MIN_USABLE_TEXT_CHARS = 50


def is_usable_document(text: str | None) -> bool:
    if not text or len(text) <= MIN_USABLE_TEXT_CHARS:
        return False
    return not any(marker in text for marker in EXTRACTION_FAILURE_MARKERS)


def apply_document_budget(
    docs: list[TrainingDocSample],
    max_docs: int,
    max_words_per_doc: int,
    max_total_words: int,
) -> list[TrainingDocSample]:
    """
    Trim documents to the analysis budget.

    Keeps at most ``max_docs`` documents, truncates each to
    ``max_words_per_doc`` words, and stops adding once the running total
    would exceed ``max_total_words``.
    """
    selected = []
    total_words = 0
    for doc in docs[:max_docs]:
        words = doc.extracted_text.split()
        if len(words) > max_words_per_doc:
            words = words[:max_words_per_doc]
            doc = TrainingDocSample(
                file_name=doc.file_name,
                extracted_text=" ".join(words),
                word_count=len(words),
            )
        if total_words + len(words) > max_total_words:
            logger.info(f"Training document word budget reached, skipping {doc.file_name}")
            break
        total_words += len(words)
        selected.append(doc)
    return selected


class ContentSourceService:
    """
    Reads voice sources for a user.

    The three reads are independent and run concurrently, each on its
    own session from the factory.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory
        self.settings = get_settings()

    async def gather_sources(self, user_id: str) -> VoiceSources:
        past_posts, training_docs, context_guide = await asyncio.gather(
            self.get_past_posts(user_id),
            self.get_training_documents(user_id),
            self.get_context_guide(user_id),
        )

        training_docs = apply_document_budget(
            training_docs,
            max_docs=self.settings.max_training_docs,
            max_words_per_doc=self.settings.max_training_doc_words,
            max_total_words=self.settings.max_training_words_total,
        )

        logger.info(
            f"Gathered sources for {user_id}: {len(past_posts)} posts, "
            f"{len(training_docs)} documents, context guide {'present' if context_guide else 'absent'}"
        )
        return VoiceSources(
            past_posts=past_posts,
            training_docs=training_docs,
            context_guide=context_guide,
        )

    async def get_source_summary(self, user_id: str) -> dict:
        """Raw source volumes for the status endpoint (no filtering or budgets)."""

        async def count(statement) -> int:
            async with self.session_factory() as session:
                return (await session.execute(statement)).scalar_one()

        past_posts, training_docs, context_guide = await asyncio.gather(
            count(select(func.count(PastPost.id)).where(PastPost.user_id == user_id)),
            count(
                select(func.count(TrainingDocument.id)).where(
                    TrainingDocument.user_id == user_id,
                    TrainingDocument.is_active.is_(True),
                )
            ),
            self.get_context_guide(user_id),
        )
        return {
            "past_posts": past_posts,
            "training_docs": training_docs,
            "has_context_guide": context_guide is not None,
        }

    async def get_past_posts(self, user_id: str) -> list[PastPostSample]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PastPost)
                .where(PastPost.user_id == user_id, PastPost.platform == "linkedin")
                .order_by(PastPost.published_at.desc())
                .limit(self.settings.max_past_posts)
            )
            return [
                PastPostSample(content=post.content, published_at=post.published_at)
                for post in result.scalars().all()
            ]

    async def get_training_documents(self, user_id: str) -> list[TrainingDocSample]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(TrainingDocument)
                .where(
                    TrainingDocument.user_id == user_id,
                    TrainingDocument.is_active.is_(True),
                    TrainingDocument.status == "completed",
                )
                .order_by(TrainingDocument.created_at.desc())
                .limit(self.settings.max_training_docs_fetched)
            )
            return [
                TrainingDocSample(
                    file_name=doc.file_name,
                    extracted_text=doc.extracted_text,
                    word_count=doc.word_count or len(doc.extracted_text.split()),
                )
                for doc in result.scalars().all()
                if is_usable_document(doc.extracted_text)
            ]

    async def get_context_guide(self, user_id: str) -> str | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserPreferences.settings).where(UserPreferences.user_id == user_id)
            )
            settings = result.scalar_one_or_none() or {}
            guide = settings.get("contextGuide") or settings.get("context_guide")
            return guide.strip() if isinstance(guide, str) and guide.strip() else None
