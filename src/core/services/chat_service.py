from typing import List, NamedTuple, Optional, Sequence, Tuple
import google.generativeai as genai
from src.core.models.chat import ConversationTurn, RetrievedChunk, SourceRef
from src.config.settings import settings
from src.utils.logging import logger

NO_CONTEXT = "<<NO RELEVANT CONTEXT FOUND>>"
NO_HISTORY = "<<FIRST TURN OR NO PRIOR CONTEXT RETAINED>>"
PROMPT_HISTORY_TURNS = 5

RAG_PROMPT_TEMPLATE = """{system_prompt}

CONTEXT DOCUMENTS (Topical excerpts with titles):
{context}

RECENT CONVERSATION (for continuity, do not repeat):
{history}

USER QUESTION: {query}

REQUIREMENTS:
1. If context supports the answer, cite sources by title in parentheses.
2. If answer is partially supported, clearly separate supported vs general knowledge.
3. If context lacks answer, explicitly state that and offer a clarifying follow-up question.
4. Keep answer under ~200 words unless user asks for more depth.
5. Never fabricate sources.

FINAL ANSWER:"""

FALLBACK_RESPONSE = (
    "I apologize, but I'm having trouble generating a response right now. "
    "Please try again."
)


class GenerationResult(NamedTuple):
    success: bool
    text: str = ""
    provider: str = ""
    error: str = ""


class GenerationProvider:
    name = "base"

    async def generate(self, prompt: str, query: str, context: Sequence[RetrievedChunk]) -> GenerationResult:
        raise NotImplementedError


class GeminiGenerator(GenerationProvider):
    name = "llm"

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_API_KEY
        self.model_name = model or settings.LLM_MODEL
        self.model = None
        if self.api_key:
            genai.configure(api_key=self.api_key)
            self.model = genai.GenerativeModel(self.model_name)

    async def generate(self, prompt: str, query: str, context: Sequence[RetrievedChunk]) -> GenerationResult:
        if self.model is None:
            return GenerationResult(False, provider=self.name, error="GOOGLE_API_KEY is not set")
        try:
            response = self.model.generate_content(
                prompt,
                generation_config={"max_output_tokens": settings.LLM_MAX_TOKENS}
            )
            text = (response.text or "").strip()
            if not text:
                return GenerationResult(False, provider=self.name, error="Empty response")
            return GenerationResult(True, text, self.name)
        except Exception as e:
            logger.warning(f"Gemini generation failed, using mock response: {e}")
            return GenerationResult(False, provider=self.name, error=str(e))


class MockGenerator(GenerationProvider):
    """Templated answers with source attribution."""
    name = "mock"

    async def generate(self, prompt: str, query: str, context: Sequence[RetrievedChunk]) -> GenerationResult:
        if not context:
            return GenerationResult(
                True,
                "I don't have specific information about that topic in my current knowledge base. "
                "Could you try rephrasing your question or asking about a different aspect?",
                self.name
            )

        sources = ", ".join(str(item.metadata.get("title", "Untitled")) for item in context)
        text = (
            "Based on the available documentation, here's what I can tell you about your question:\n\n"
            f"{self.mock_answer(query)}\n\n"
            f"This information is sourced from: {sources}\n\n"
            "Would you like me to elaborate on any specific aspect?"
        )
        return GenerationResult(True, text, self.name)

    @staticmethod
    def mock_answer(query: str) -> str:
        lower_query = query.lower()
        words = set(lower_query.split())

        if "machine learning" in lower_query or "ml" in words:
            return ("Machine learning is a powerful subset of AI that allows systems to learn from data "
                    "without being explicitly programmed. It's widely used in applications ranging from "
                    "recommendation systems to autonomous vehicles.")
        if "python" in lower_query:
            return ("Python dominates data work thanks to libraries like NumPy, pandas and scikit-learn, "
                    "and it is the usual glue language for embedding and retrieval pipelines.")
        if "gemini" in lower_query or "embedding" in lower_query:
            return ("Hosted model APIs such as Gemini provide both text generation and embedding models, "
                    "so the same provider can build the vector store and answer questions over it.")
        return ("This appears to be a technology-related question. The available documentation contains "
                "information about various tech topics, tools, and best practices.")


class ChatService:
    def __init__(self, generators: Optional[Sequence[GenerationProvider]] = None):
        if generators is None:
            generators = []
            if not settings.USE_MOCK_LLM:
                generators.append(GeminiGenerator())
            generators.append(MockGenerator())
        self.generators = list(generators)

    def prepare_context(self, chunks: Sequence[RetrievedChunk]) -> Tuple[str, List[SourceRef]]:
        """Prepare context and sources from retrieved chunks."""
        context_parts = []
        sources = []

        for chunk in chunks:
            title = chunk.metadata.get("title", "Untitled")
            context_parts.append(f"Source: {title}\nContent: {chunk.content}")
            sources.append(SourceRef(
                title=str(title),
                url=str(chunk.metadata.get("url", "")),
                similarity=chunk.similarity
            ))

        return "\n\n".join(context_parts), sources

    def build_prompt(
        self,
        query: str,
        context: str,
        conversation_history: Optional[Sequence[ConversationTurn]] = None
    ) -> str:
        history_snippet = ""
        if conversation_history:
            recent = list(conversation_history)[-PROMPT_HISTORY_TURNS:]
            history_snippet = "\n---\n".join(
                f"User: {turn.query}\nAssistant: {turn.response.splitlines()[0] if turn.response else ''}"
                for turn in recent
            )

        return RAG_PROMPT_TEMPLATE.format(
            system_prompt=settings.SYSTEM_PROMPT,
            context=context or NO_CONTEXT,
            history=history_snippet or NO_HISTORY,
            query=query
        )

    async def generate_response(
        self,
        query: str,
        prompt: str,
        context: Sequence[RetrievedChunk]
    ) -> GenerationResult:
        """Generate an answer with the first generator that succeeds."""
        errors = []
        for generator in self.generators:
            result = await generator.generate(prompt, query, context)
            if result.success:
                return result
            errors.append(f"{generator.name}: {result.error}")

        logger.error(f"All generators failed: {'; '.join(errors)}")
        return GenerationResult(False, FALLBACK_RESPONSE, "none", "; ".join(errors))
