"""Token counting seam for context budgeting.

Exact tokenization is provider-specific. The default counter is an
APPROXIMATION (one token per four characters, rounded up) and is only used
to keep the assembled context inside a budget. Swap in an exact counter by
implementing TokenCounterInterface and passing it to the ContextAssembler.
"""

import math
from abc import ABC, abstractmethod

from shared.helper.HelperConfig import HelperConfig


class TokenCounterInterface(ABC):
    """Counts tokens for a piece of text. Must be monotonic in the text length."""

    @abstractmethod
    def count(self, text: str) -> int:
        pass


class ApproximateTokenCounter(TokenCounterInterface):
    """Approximate counter: ceil(len(text) / chars_per_token)."""

    def __init__(self, chars_per_token: float = 4.0):
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive.")
        self.chars_per_token = chars_per_token

    def count(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)


def get_token_counter(helper_config: HelperConfig) -> TokenCounterInterface:
    """Build the configured token counter.

    Reads RETRIEVAL_CHARS_PER_TOKEN (default 4).
    """
    chars_per_token = helper_config.get_number_val("RETRIEVAL_CHARS_PER_TOKEN", default=4)
    return ApproximateTokenCounter(chars_per_token=float(chars_per_token))
