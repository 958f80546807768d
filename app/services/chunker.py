# app/services/chunker.py
import math, re
from typing import List

# a run of non-terminators closed by terminators, or a bare run of terminators;
# the tail without a terminator is kept as its own sentence
_SENTENCE = re.compile(r"[^.!?]+[.!?]*|[.!?]+")

def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()

def estimate_tokens(text: str) -> int:
    # rough estimate, ~4 chars per token
    return math.ceil(len(text) / 4)

def split_sentences(text: str) -> List[str]:
    out = []
    for m in _SENTENCE.finditer(text):
        s = m.group(0).strip()
        if s:
            out.append(s)
    return out

def _split_long_word(word: str, max_size: int) -> List[str]:
    return [word[i:i + max_size] for i in range(0, len(word), max_size)]

def chunk_text(text: str, max_size: int = 500, overlap: int = 50) -> List[str]:
    """
    Split text into chunks of at most max_size characters.

    Sentences are packed greedily; a sentence longer than max_size is packed
    word by word instead. `overlap` is accepted for interface symmetry only:
    no text is repeated across chunk boundaries.
    """
    if max_size <= 0:
        raise ValueError("max_size must be positive")

    cleaned = collapse_whitespace(text)
    if not cleaned:
        return []
    if len(cleaned) <= max_size:
        return [cleaned]

    chunks: List[str] = []
    current = ""

    def pack(piece: str) -> None:
        nonlocal current
        candidate = f"{current} {piece}" if current else piece
        if len(candidate) <= max_size:
            current = candidate
            return
        if current:
            chunks.append(current)
        current = piece

    for sentence in split_sentences(cleaned):
        if len(sentence) <= max_size:
            pack(sentence)
            continue

        # sentence alone is too long: flush and fall back to words
        if current:
            chunks.append(current)
            current = ""
        for word in sentence.split(" "):
            if len(word) > max_size:
                if current:
                    chunks.append(current)
                    current = ""
                *full, rest = _split_long_word(word, max_size)
                chunks.extend(full)
                current = rest
            else:
                pack(word)

    if current:
        chunks.append(current)
    return chunks
