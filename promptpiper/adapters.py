import string
from enum import Enum
from typing import Callable, Dict, Iterable, Mapping, NamedTuple

from .exceptions import ConfigurationError

PUNCTUATION = set(string.punctuation)

BERT_CONTINUATION_PREFIX = "##"
XLM_ROBERTA_WORD_PREFIX = "▁"


class ModelFamily(str, Enum):
    BERT_MULTILINGUAL = "bert-multilingual"
    XLM_ROBERTA = "xlm-roberta"


class WordAdapter(NamedTuple):
    """Tokenizer-family specific predicates used while merging tokens into words."""

    is_begin_of_new_word: Callable[[str, Iterable[str], Mapping[str, str]], bool]
    get_pure_token: Callable[[str], str]


def _is_forced(pure_token, force_tokens, token_map):
    if force_tokens and pure_token in force_tokens:
        return True
    return token_map is not None and pure_token in set(token_map.values())


def get_pure_token_bert(token: str) -> str:
    if token.startswith(BERT_CONTINUATION_PREFIX):
        return token[len(BERT_CONTINUATION_PREFIX):]
    return token


def is_begin_of_new_word_bert(token: str, force_tokens=(), token_map=None) -> bool:
    if token in PUNCTUATION or _is_forced(get_pure_token_bert(token), force_tokens, token_map):
        return True
    return not token.startswith(BERT_CONTINUATION_PREFIX)


def get_pure_token_xlm_roberta(token: str) -> str:
    if token.startswith(XLM_ROBERTA_WORD_PREFIX):
        return token[len(XLM_ROBERTA_WORD_PREFIX):]
    return token


def is_begin_of_new_word_xlm_roberta(token: str, force_tokens=(), token_map=None) -> bool:
    if token in PUNCTUATION or _is_forced(token, force_tokens, token_map):
        return True
    return token.startswith(XLM_ROBERTA_WORD_PREFIX)


ADAPTERS: Dict[ModelFamily, WordAdapter] = {
    ModelFamily.BERT_MULTILINGUAL: WordAdapter(is_begin_of_new_word_bert, get_pure_token_bert),
    ModelFamily.XLM_ROBERTA: WordAdapter(is_begin_of_new_word_xlm_roberta, get_pure_token_xlm_roberta),
}


def get_adapter(family) -> WordAdapter:
    try:
        return ADAPTERS[ModelFamily(family)]
    except ValueError:
        raise ConfigurationError(f"Unknown model family: {family}") from None
