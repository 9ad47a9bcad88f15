import re
from typing import List

_SENTENCE_PATTERN = re.compile(r'[^.!?]+[.!?]+')


def split_sentences(text: str) -> List[str]:
    """Split text into sentences ending in '.', '!' or '?'.

    A non-blank remainder after the last terminator is kept as a final
    sentence. Text without any terminator yields no sentences.
    """
    sentences = []
    end = 0
    for match in _SENTENCE_PATTERN.finditer(text):
        sentence = match.group(0).strip()
        if sentence and any(c.isalnum() for c in sentence):
            sentences.append(sentence)
        elif sentence and sentences:
            # Lone punctuation belongs to the previous sentence
            sentences[-1] = f"{sentences[-1]} {sentence}"
        end = match.end()

    if not sentences:
        return []

    remainder = text[end:].strip()
    if remainder:
        sentences.append(remainder)
    return sentences


def create_simple_chunks(text: str, max_words: int) -> List[str]:
    """Slice text into consecutive groups of max_words words."""
    words = text.split()
    return [
        " ".join(words[i:i + max_words])
        for i in range(0, len(words), max_words)
    ]


def chunk_text(text: str, max_words: int = 500) -> List[str]:
    """Split text into sentence-bounded chunks of at most max_words words.

    A single sentence longer than the bound becomes a chunk of its own.
    Falls back to fixed-width word slicing when no sentences are found.

    Args:
        text (str): Raw article text
        max_words (int): Word budget per chunk

    Returns:
        List[str]: Non-empty chunks in document order
    """
    if max_words <= 0:
        raise ValueError("max_words must be positive")
    if not text or not text.strip():
        return []

    chunks: List[str] = []
    current: List[str] = []
    current_words = 0

    for sentence in split_sentences(text):
        sentence_words = len(sentence.split())
        if current and current_words + sentence_words > max_words:
            chunks.append(" ".join(current))
            current = []
            current_words = 0
        current.append(sentence)
        current_words += sentence_words

    if current:
        chunks.append(" ".join(current))

    if not chunks:
        return create_simple_chunks(text, max_words)
    return chunks
