"""Shared fixtures for the PromptPiper test suite.

The real classifier and tokenizers are replaced by small deterministic fakes:
a WordPiece-style tokenizer, a token classifier whose keep probabilities come
from a lookup table, and a regex-based reference tokenizer.
"""

import re
from types import SimpleNamespace

import pytest
import torch

from promptpiper import ModelConfig, ModelFamily, ModelHandle, PromptCompressor
from promptpiper.loading import init_placeholder_tokens

PIECE_PATTERN = re.compile(r"\[NEW\d+\]|\w+|[^\w\s]")


class FakeWordPieceTokenizer:
    """Splits on whitespace and punctuation; alphabetic words longer than six
    characters become a four-letter head plus a `##` continuation."""

    cls_token = "[CLS]"
    sep_token = "[SEP]"
    pad_token = "[PAD]"
    unk_token = "[UNK]"
    mask_token = "[MASK]"

    def __init__(self):
        self.vocab = {}
        self.ids_to_tokens = {}
        self.additional_special_tokens = []
        for token in ["[PAD]", "[UNK]", "[CLS]", "[SEP]", "[MASK]"]:
            self._id(token)

    def _id(self, token):
        if token not in self.vocab:
            idx = len(self.vocab)
            self.vocab[token] = idx
            self.ids_to_tokens[idx] = token
        return self.vocab[token]

    @property
    def special_tokens_map(self):
        return {
            "unk_token": self.unk_token,
            "sep_token": self.sep_token,
            "pad_token": self.pad_token,
            "cls_token": self.cls_token,
            "mask_token": self.mask_token,
            "additional_special_tokens": list(self.additional_special_tokens),
        }

    def add_special_tokens(self, special_tokens_dict):
        for token in special_tokens_dict.get("additional_special_tokens", []):
            self._id(token)
            self.additional_special_tokens.append(token)
        return len(special_tokens_dict.get("additional_special_tokens", []))

    def __len__(self):
        return len(self.vocab)

    def tokenize(self, text):
        tokens = []
        for piece in PIECE_PATTERN.findall(text):
            if piece.isalpha() and len(piece) > 6:
                tokens.extend([piece[:4], "##" + piece[4:]])
            else:
                tokens.append(piece)
        return tokens

    def convert_tokens_to_string(self, tokens):
        return " ".join(tokens).replace(" ##", "").strip()

    def convert_tokens_to_ids(self, tokens):
        return [self._id(t) for t in tokens]

    def convert_ids_to_tokens(self, ids):
        return [self.ids_to_tokens[i] for i in ids]


class FakeTokenClassifier:
    """Returns two-class logits whose softmax equals the table probability of
    each token (looked up as-is, then without its `##` marker)."""

    def __init__(self, tokenizer, scores=None, default=0.5, on_call=None):
        self.tokenizer = tokenizer
        self.on_call = on_call
        self.scores = dict(scores or {})
        self.default = default
        self.calls = 0
        self.batch_sizes = []

    def eval(self):
        return self

    def resize_token_embeddings(self, n):
        self.n_embeddings = n

    def _prob(self, token):
        if token in self.scores:
            return self.scores[token]
        return self.scores.get(token.lstrip("#"), self.default)

    def __call__(self, input_ids, attention_mask=None):
        self.calls += 1
        self.batch_sizes.append(input_ids.shape[0])
        probs = torch.tensor(
            [
                [self._prob(self.tokenizer.ids_to_tokens[i]) for i in row]
                for row in input_ids.tolist()
            ],
            dtype=torch.float32,
        ).clamp(1e-6, 1 - 1e-6)
        logits = torch.stack([torch.log1p(-probs), torch.log(probs)], dim=-1)
        if self.on_call is not None:
            self.on_call(self)
        return SimpleNamespace(loss=None, logits=logits)


class FakeReferenceTokenizer:
    """Counts one token per word or punctuation mark."""

    def encode(self, text, disallowed_special=()):
        return list(range(len(PIECE_PATTERN.findall(text))))


def make_handle(scores=None, default=0.5, max_seq_len=512, max_force_token=100, key="fake"):
    tokenizer = FakeWordPieceTokenizer()
    model = FakeTokenClassifier(tokenizer, scores=scores, default=default)
    special_tokens, added_tokens = init_placeholder_tokens(model, tokenizer, max_force_token)
    return ModelHandle(
        key=key,
        model=model,
        tokenizer=tokenizer,
        device="cpu",
        family=ModelFamily.BERT_MULTILINGUAL,
        max_seq_len=max_seq_len,
        special_tokens=special_tokens,
        added_tokens=added_tokens,
    )


def words_of(text):
    return PIECE_PATTERN.findall(text)


def is_subsequence(sub, seq):
    it = iter(seq)
    return all(item in it for item in sub)


@pytest.fixture
def tokenizer():
    return FakeWordPieceTokenizer()


@pytest.fixture
def reference_tokenizer():
    return FakeReferenceTokenizer()


@pytest.fixture
def make_compressor(reference_tokenizer):
    """Factory: build a PromptCompressor over the fake model and tokenizers."""

    def _make(scores=None, default=0.5, max_seq_len=512, max_batch_size=50, max_force_token=100):
        handle = make_handle(scores, default, max_seq_len, max_force_token)
        return PromptCompressor(
            handle,
            oai_tokenizer=reference_tokenizer,
            max_batch_size=max_batch_size,
        )

    return _make


@pytest.fixture
def fake_loader():
    """Loader stand-in for ModelManager; records every config it loads."""
    loaded = []

    def _load(config, device_map="cpu", max_force_token=100):
        loaded.append(config.key)
        return make_handle(key=config.key, max_force_token=max_force_token)

    _load.loaded = loaded
    return _load


@pytest.fixture
def registry():
    return {
        "bert": ModelConfig(key="bert", model_name="fake/bert", family=ModelFamily.BERT_MULTILINGUAL),
        "xlm-roberta": ModelConfig(key="xlm-roberta", model_name="fake/xlm", family=ModelFamily.XLM_ROBERTA),
    }
