from typing import List, Optional, Sequence, Tuple

from loguru import logger

from .adapters import WordAdapter
from .cancellation import CancellationToken, check_cancelled
from .inference import run_inference_on_chunks
from .token_ops import ScoredWord, TokenMap
from .utils import percentile


def compute_threshold(words: Sequence[ScoredWord], reduce_rate: float, oai_tokenizer) -> float:
    """
    Percentile cut over word probabilities, each repeated once per reference
    tokenizer token of the word, so the dropped share is measured in billed
    tokens rather than in words.
    """
    new_token_probs = []
    for word in words:
        num_token = len(oai_tokenizer.encode(word.text, disallowed_special=()))
        new_token_probs.extend([word.prob for _ in range(num_token)])

    return percentile(new_token_probs, 100 * reduce_rate)


def select_words(words: Sequence[ScoredWord], threshold: float) -> Tuple[List[ScoredWord], List[int]]:
    keep_words = []
    word_labels = []
    for word in words:
        if word.prob > threshold or (
                threshold == 1.0 and word.prob == threshold
        ):
            keep_words.append(word)
            word_labels.append(1)
        else:
            word_labels.append(0)
    return keep_words, word_labels


def compress_chunks(
    chunk_list: List[str],
    model,
    tokenizer,
    device,
    oai_tokenizer,
    max_seq_len,
    max_batch_size,
    special_tokens,
    adapter: WordAdapter,
    reduce_rate: float = 0.5,
    token_to_word: str = "mean",
    force_tokens: Optional[List[str]] = None,
    token_map: Optional[TokenMap] = None,
    force_reserve_digit: bool = False,
    drop_consecutive: bool = False,
    cancel_token: Optional[CancellationToken] = None,
):
    logger.debug(f"Executing compress_chunks with reduce_rate={reduce_rate}, chunks={len(chunk_list)}")
    if drop_consecutive:
        logger.debug("drop_consecutive is accepted but does not change word selection.")
    force_tokens = force_tokens or []
    token_map = token_map if token_map is not None else TokenMap()

    inference_gen = run_inference_on_chunks(
        chunk_list,
        model,
        tokenizer,
        device,
        max_seq_len,
        max_batch_size,
        special_tokens,
        adapter,
        token_to_word,
        force_tokens,
        token_map,
        force_reserve_digit,
        cancel_token,
    )

    compressed_chunk_list = []
    word_list = []
    word_label_list = []

    for words in inference_gen:
        check_cancelled(cancel_token, "selection")
        threshold = compute_threshold(words, reduce_rate, oai_tokenizer)
        keep_words, word_labels = select_words(words, threshold)
        logger.trace(f"Chunk threshold={threshold:.4f}, kept {len(keep_words)}/{len(words)} words")

        keep_str = token_map.revert(
            tokenizer.convert_tokens_to_string([w.token for w in keep_words])
        )
        compressed_chunk_list.append(keep_str)
        word_list.append(words)
        word_label_list.append(word_labels)

    return compressed_chunk_list, word_list, word_label_list
