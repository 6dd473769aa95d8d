"""Tests for batch preparation and probability extraction."""

import pytest

from conftest import make_handle
from promptpiper.dataset import TokenClfDataset
from promptpiper import CancellationToken, CompressionCancelled
from promptpiper.inference import predict_token_probs


class TestTokenClfDataset:
    def test_pads_and_masks(self, tokenizer):
        dataset = TokenClfDataset(["hello world"], max_len=6, tokenizer=tokenizer)
        item = dataset[0]
        tokens = tokenizer.convert_ids_to_tokens(item["ids"].tolist())
        assert tokens == ["[CLS]", "hello", "world", "[SEP]", "[PAD]", "[PAD]"]
        assert item["mask"].tolist() == [1, 1, 1, 1, 0, 0]
        assert len(dataset) == 1

    def test_truncates(self, tokenizer):
        dataset = TokenClfDataset(["a b c d e f g"], max_len=4, tokenizer=tokenizer)
        item = dataset[0]
        assert item["ids"].shape[0] == 4
        assert item["mask"].tolist() == [1, 1, 1, 1]


class TestPredictTokenProbs:
    def test_keep_class_probabilities(self):
        handle = make_handle({"hello": 0.8, "world": 0.25})
        results = list(
            predict_token_probs(
                ["hello world", "world"], handle.model, handle.tokenizer, "cpu",
                max_seq_len=8, max_batch_size=1,
            )
        )
        assert len(results) == 2
        tokens, probs = results[0]
        assert tokens == ["[CLS]", "hello", "world", "[SEP]"]
        assert probs[1] == pytest.approx(0.8, abs=1e-5)
        assert probs[2] == pytest.approx(0.25, abs=1e-5)
        assert results[1][0] == ["[CLS]", "world", "[SEP]"]
        assert handle.model.batch_sizes == [1, 1]

    def test_stops_at_next_batch_once_cancelled(self):
        handle = make_handle()
        token = CancellationToken()
        batches = predict_token_probs(
            ["one two", "three four", "five six"], handle.model, handle.tokenizer, "cpu",
            max_seq_len=8, max_batch_size=1, cancel_token=token,
        )
        tokens, _ = next(batches)
        assert tokens == ["[CLS]", "one", "two", "[SEP]"]
        token.cancel("deadline exceeded")
        with pytest.raises(CompressionCancelled, match="inference batch 1"):
            next(batches)
        assert handle.model.calls == 1
