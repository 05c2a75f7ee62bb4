from __future__ import annotations

import re
from typing import Iterator, List

from .models import Span, Token

TOKEN_PATTERN = re.compile(r"\w+", re.UNICODE)


class TokenSequence:
    """Lazy, restartable view of the word tokens in ``text``.

    Every iteration rescans the text, so two passes over the same sequence
    yield identical tokens.
    """

    __slots__ = ("text",)

    def __init__(self, text: str) -> None:
        self.text = text

    def __iter__(self) -> Iterator[Token]:
        for ordinal, match in enumerate(TOKEN_PATTERN.finditer(self.text)):
            yield Token(
                word=match.group().lower(),
                span=Span(match.start(), match.end()),
                ordinal=ordinal,
            )


def tokenize_words(text: str) -> List[Token]:
    """Tokenize text into lowercased word tokens with character offsets."""
    return list(TokenSequence(text))
