"""Token-budgeted context assembly.

Candidates arrive ranked. They are packed greedily; the token count of the
whole assembled string (headers and delimiters included) never exceeds the
budget. The first candidate that does not fit whole is truncated, at the last
complete sentence if one fits, otherwise at a word boundary if at least
``min_truncation_chars`` characters survive, otherwise skipped. Packing stops
there. There is no overrun allowance: a truncated block also fits the budget.
"""

import re

from pydantic import BaseModel

from shared.helper.TokenCounter import ApproximateTokenCounter, TokenCounterInterface
from shared.models.document import Document
from shared.models.search import SourceReference

SOURCE_DELIMITER = "\n\n---\n\n"
TRUNCATION_MARKER = " …"
MIN_TRUNCATION_CHARS = 80

_SENTENCE_END = re.compile(r"[.!?](?:[\"')\]]*)(?=\s|$)")


class Candidate(BaseModel):
    """A retrieved document with its similarity score."""

    document: Document
    score: float


class AssembledContext(BaseModel):
    context: str = ""
    sources: list[SourceReference] = []
    tokens_used: int = 0


def _last_sentence_end(text: str, limit: int) -> int:
    """Index just past the last sentence terminator ending at or before limit, or 0 if there is none.

    text may run past limit; the character after the cut decides whether a
    terminator ends a sentence ("3." in "3.50" does not).
    """
    end = 0
    for match in _SENTENCE_END.finditer(text):
        if match.end() > limit:
            break
        end = match.end()
    return end


def _last_word_end(text: str) -> int:
    cut = text.rstrip()
    space = cut.rfind(" ")
    return space if space > 0 else len(cut)


class ContextAssembler:
    """Packs ranked candidates into a context string under a token budget."""

    def __init__(self, token_counter: TokenCounterInterface | None = None, min_truncation_chars: int = MIN_TRUNCATION_CHARS):
        self.token_counter = token_counter or ApproximateTokenCounter()
        self.min_truncation_chars = min_truncation_chars

    @staticmethod
    def format_block(position: int, title: str, text: str) -> str:
        return f"[Source {position}: {title}]\n{text}"

    def _join(self, prefix: str, block: str) -> str:
        return f"{prefix}{SOURCE_DELIMITER}{block}" if prefix else block

    def _fits(self, text: str, max_tokens: int) -> bool:
        return self.token_counter.count(text) <= max_tokens

    def assemble(self, candidates: list[Candidate], max_tokens: int) -> AssembledContext:
        """Pack candidates in the given order.

        Args:
            candidates (list[Candidate]): Ranked candidates, best first.
            max_tokens (int): Token budget for the whole context string.

        Returns:
            AssembledContext: The context, the sources actually included (same order), and tokens used.
        """
        context = ""
        sources: list[SourceReference] = []

        for candidate in candidates:
            doc = candidate.document
            position = len(sources) + 1
            full = self._join(context, self.format_block(position, doc.title, doc.content.strip()))
            if self._fits(full, max_tokens):
                context = full
                sources.append(SourceReference(id=doc.id, title=doc.title, score=candidate.score))
                continue

            truncated = self._truncate(context, position, doc, max_tokens)
            if truncated is not None:
                context = truncated
                sources.append(SourceReference(id=doc.id, title=doc.title, score=candidate.score, truncated=True))
            break

        return AssembledContext(context=context, sources=sources, tokens_used=self.token_counter.count(context))

    def _truncate(self, context: str, position: int, doc: Document, max_tokens: int) -> str | None:
        """Longest useful prefix of doc.content that still fits, or None."""
        header_only = self._join(context, self.format_block(position, doc.title, ""))
        if not self._fits(header_only, max_tokens):
            return None

        content = doc.content.strip()
        # binary search the longest raw prefix that fits; the counter is monotonic
        lo, hi = 0, len(content)
        while lo < hi:
            mid = (lo + hi + 1) // 2
            if self._fits(self._join(context, self.format_block(position, doc.title, content[:mid] + TRUNCATION_MARKER)), max_tokens):
                lo = mid
            else:
                hi = mid - 1
        prefix = content[:lo]

        sentence_end = _last_sentence_end(content[: lo + 1], lo)
        if sentence_end > 0:
            text = prefix[:sentence_end].rstrip()
        else:
            text = prefix[:_last_word_end(prefix)].rstrip()
            if len(text) < self.min_truncation_chars:
                return None
        return self._join(context, self.format_block(position, doc.title, text + TRUNCATION_MARKER))
