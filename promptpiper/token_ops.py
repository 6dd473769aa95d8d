from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from loguru import logger

from .adapters import WordAdapter
from .exceptions import ConfigurationError


class TokenMap:
    """
    Bidirectional mapping between forced phrases and the reserved single-token
    placeholders standing in for them during classification.

    Substitution is plain literal replacement, longest phrase first, so
    overlapping phrases and regex metacharacters are handled exactly.
    """

    def __init__(self, mapping: Optional[Dict[str, str]] = None):
        self._forward: Dict[str, str] = {}
        self._backward: Dict[str, str] = {}
        for phrase, placeholder in (mapping or {}).items():
            self.add(phrase, placeholder)

    @classmethod
    def build(cls, force_tokens: Iterable[str], tokenizer, placeholders: Sequence[str]) -> "TokenMap":
        """
        Allocates a placeholder for every forced phrase that the tokenizer does
        not turn into exactly one token.
        """
        token_map = cls()
        pool = iter(placeholders)
        for phrase in force_tokens:
            if not phrase or phrase in token_map:
                continue
            if len(tokenizer.tokenize(phrase)) == 1:
                continue
            placeholder = next(pool, None)
            if placeholder is None:
                raise ConfigurationError(
                    f"Placeholder pool exhausted: at most {len(placeholders)} multi-token force tokens are supported"
                )
            token_map.add(phrase, placeholder)
        logger.debug(f"Token map: {token_map.as_dict()}")
        return token_map

    def add(self, phrase: str, placeholder: str):
        if phrase in self._forward or placeholder in self._backward:
            raise ValueError(f"Duplicate token map entry: {phrase!r} -> {placeholder!r}")
        self._forward[phrase] = placeholder
        self._backward[placeholder] = phrase

    def placeholder_for(self, phrase: str) -> Optional[str]:
        return self._forward.get(phrase)

    def original_for(self, placeholder: str) -> Optional[str]:
        return self._backward.get(placeholder)

    def placeholders(self):
        return set(self._backward)

    def values(self):
        return self._forward.values()

    def items(self):
        return self._forward.items()

    def as_dict(self) -> Dict[str, str]:
        return dict(self._forward)

    def apply(self, text: str) -> str:
        for phrase in sorted(self._forward, key=len, reverse=True):
            text = text.replace(phrase, self._forward[phrase])
        return text

    def revert(self, text: str) -> str:
        for placeholder in sorted(self._backward, key=len, reverse=True):
            text = text.replace(placeholder, self._backward[placeholder])
        return text

    def __contains__(self, phrase) -> bool:
        return phrase in self._forward

    def __len__(self) -> int:
        return len(self._forward)

    def __bool__(self) -> bool:
        return bool(self._forward)


@dataclass
class ScoredWord:
    token: str
    text: str
    probs: List[float] = field(default_factory=list)
    probs_no_force: List[float] = field(default_factory=list)
    prob: float = 0.0


def _digit_prob(pure_token, prob, force_reserve_digit):
    if force_reserve_digit and pure_token[:1].isdigit():
        return 1.0
    return prob


def merge_token_to_word(
        tokens: Sequence[str],
        token_probs: Sequence[float],
        force_tokens: Sequence[str],
        token_map: TokenMap,
        force_reserve_digit: bool,
        special_tokens,
        adapter: WordAdapter,
) -> List[ScoredWord]:
    words: List[ScoredWord] = []
    placeholders = token_map.placeholders()

    for token, prob in zip(tokens, token_probs):
        prob = float(prob)
        if token in special_tokens:
            continue
        pure_token = adapter.get_pure_token(token)
        # add a new word
        if not words or adapter.is_begin_of_new_word(token, force_tokens, token_map):
            prob_no_force = prob
            if pure_token in force_tokens or pure_token in placeholders:
                prob = 1.0
            words.append(
                ScoredWord(
                    token=token_map.revert(token),
                    text=token_map.revert(pure_token),
                    probs=[_digit_prob(pure_token, prob, force_reserve_digit)],
                    probs_no_force=[prob_no_force],
                )
            )
        # concatenate with previous token
        else:
            word = words[-1]
            word.token += pure_token
            word.text += pure_token
            word.probs.append(_digit_prob(pure_token, prob, force_reserve_digit))
            word.probs_no_force.append(prob)

    return words


def token_prob_to_word_prob(token_probs: List[List[float]], convert_mode: str = "mean") -> List[float]:
    if convert_mode == "mean":
        word_probs = [sum(p) / len(p) for p in token_probs]
    elif convert_mode == "first":
        word_probs = [p[0] for p in token_probs]
    else:
        raise ConfigurationError(f"Unknown token_to_word mode: {convert_mode}")

    return word_probs


def aggregate_word_probs(words: List[ScoredWord], convert_mode: str = "mean") -> List[ScoredWord]:
    for word, prob in zip(words, token_prob_to_word_prob([w.probs for w in words], convert_mode)):
        word.prob = prob
    return words
