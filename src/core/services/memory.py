from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Dict, List, Optional
from src.core.models.chat import ConversationTurn
from src.config.settings import settings

TOKEN_PRUNE_RATIO = 0.8


class ConversationStore(ABC):
    """Conversation turns keyed by conversation id."""

    @abstractmethod
    def get(self, conversation_id: str) -> List[ConversationTurn]:
        ...

    @abstractmethod
    def append(self, conversation_id: str, turn: ConversationTurn) -> List[ConversationTurn]:
        ...

    @abstractmethod
    def evict(self, conversation_id: str) -> None:
        ...

    def recent_queries(self, conversation_id: str, n: int = 3) -> List[str]:
        if n <= 0:
            return []
        return [turn.query for turn in self.get(conversation_id)[-n:]]


class InMemoryConversationStore(ConversationStore):
    """Process-local conversation memory with a turn cap and token budget."""

    def __init__(
        self,
        max_turns: Optional[int] = None,
        token_budget: Optional[int] = None
    ):
        self.max_turns = max_turns if max_turns is not None else settings.MAX_CONVERSATION_TURNS
        self.token_budget = token_budget if token_budget is not None else settings.CONVERSATION_TOKEN_BUDGET
        self._conversations: Dict[str, List[ConversationTurn]] = {}

    def get(self, conversation_id: str) -> List[ConversationTurn]:
        return list(self._conversations.get(conversation_id, []))

    def append(self, conversation_id: str, turn: ConversationTurn) -> List[ConversationTurn]:
        history = self._conversations.setdefault(conversation_id, [])
        history.append(turn)

        if len(history) > self.max_turns:
            del history[:len(history) - self.max_turns]

        if self._token_count(history) > self.token_budget:
            threshold = self.token_budget * TOKEN_PRUNE_RATIO
            while len(history) > 1 and self._token_count(history) > threshold:
                history.pop(0)

        return list(history)

    def evict(self, conversation_id: str) -> None:
        self._conversations.pop(conversation_id, None)

    def __len__(self) -> int:
        return len(self._conversations)

    @staticmethod
    def _token_count(history: List[ConversationTurn]) -> int:
        return sum(turn.approx_tokens for turn in history)


class EmbeddingCache(ABC):
    """Query text to embedding vector."""

    @abstractmethod
    def get(self, text: str) -> Optional[List[float]]:
        ...

    @abstractmethod
    def put(self, text: str, vector: List[float]) -> None:
        ...

    @abstractmethod
    def evict(self, text: str) -> None:
        ...


class LRUEmbeddingCache(EmbeddingCache):
    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries if max_entries is not None else settings.EMBEDDING_CACHE_SIZE
        self._entries: "OrderedDict[str, List[float]]" = OrderedDict()

    def get(self, text: str) -> Optional[List[float]]:
        vector = self._entries.get(text)
        if vector is not None:
            self._entries.move_to_end(text)
        return vector

    def put(self, text: str, vector: List[float]) -> None:
        self._entries[text] = vector
        self._entries.move_to_end(text)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def evict(self, text: str) -> None:
        self._entries.pop(text, None)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, text: str) -> bool:
        return text in self._entries
