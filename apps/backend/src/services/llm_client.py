"""Generation service: chat completions and embeddings over an OpenAI-compatible API."""
import logging

from openai import AsyncOpenAI, OpenAIError

from src.core.config import Settings
from src.core.errors import GenerationError


logger = logging.getLogger(__name__)


class LLMClient:
    """
    complete() and embed() are the only two operations the pipeline needs.
    Retries are disabled; a failed call is reported once and the caller
    re-selects the work on its next scheduled run.
    """

    def __init__(
        self,
        chat: AsyncOpenAI,
        embeddings: AsyncOpenAI,
        chat_model: str,
        embedding_model: str,
    ):
        self.chat = chat
        self.embeddings = embeddings
        self.chat_model = chat_model
        self.embedding_model = embedding_model

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        chat = AsyncOpenAI(
            api_key=settings.llm_api_key or None,
            base_url=settings.llm_base_url,
            timeout=settings.request_timeout_seconds,
            max_retries=0,
        )
        if settings.embedding_base_url or settings.embedding_api_key:
            embeddings = AsyncOpenAI(
                api_key=settings.embedding_api_key or settings.llm_api_key or None,
                base_url=settings.embedding_base_url or settings.llm_base_url,
                timeout=settings.request_timeout_seconds,
                max_retries=0,
            )
        else:
            embeddings = chat
        return cls(chat, embeddings, settings.llm_model, settings.embedding_model)

    async def complete(self, system_prompt: str, user_prompt: str, max_tokens: int) -> str:
        """Returns the first choice's text; GenerationError on any failure or empty reply."""
        try:
            response = await self.chat.chat.completions.create(
                model=self.chat_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
            )
        except OpenAIError as e:
            logger.error("Error getting completion: %s", e)
            raise GenerationError(f"Failed to get reply from generation service: {e}") from e

        if not response.choices or not response.choices[0].message.content:
            raise GenerationError("Generation service returned an empty reply")
        return response.choices[0].message.content

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self.embeddings.embeddings.create(
                model=self.embedding_model,
                input=text,
            )
        except OpenAIError as e:
            logger.error("Error getting embedding: %s", e)
            raise GenerationError(f"Failed to get embedding: {e}") from e

        if not response.data or not response.data[0].embedding:
            raise GenerationError("Generation service returned no embedding")
        return [float(x) for x in response.data[0].embedding]

    async def close(self) -> None:
        await self.chat.close()
        if self.embeddings is not self.chat:
            await self.embeddings.close()
