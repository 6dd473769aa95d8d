from typing import List, Tuple, Optional

from loguru import logger

from .cancellation import CancellationToken, check_cancelled
from .core_compression import compress_chunks
from .schemas import CompressionRequest, CompressionResult
from .text_ops import get_token_length, chunk_context
from .token_ops import ScoredWord, TokenMap


def prepare_tokens_and_chunks(
    context: str,
    force_tokens: List[str],
    tokenizer,
    added_tokens: List[str],
    chunk_end_tokens: List[str],
    max_seq_len: int,
    oai_tokenizer,
) -> Tuple[List[str], TokenMap, int]:
    token_map = TokenMap.build(force_tokens, tokenizer, added_tokens)

    # a chunk-end token replaced by a placeholder must still end chunks
    chunk_end_tokens_set = set(chunk_end_tokens)
    for c in chunk_end_tokens:
        placeholder = token_map.placeholder_for(c)
        if placeholder is not None:
            chunk_end_tokens_set.add(placeholder)

    n_original_token = get_token_length(
        context, use_oai_tokenizer=True, oai_tokenizer=oai_tokenizer
    )
    context_chunked = chunk_context(
        token_map.apply(context),
        chunk_end_tokens=chunk_end_tokens_set,
        tokenizer=tokenizer,
        max_seq_len=max_seq_len,
    )

    logger.info(f"Original token count: {n_original_token}, chunks: {len(context_chunked)}")
    return context_chunked, token_map, n_original_token


def resolve_reduce_rate(rate: float, target_token: int, n_original_token: int) -> float:
    if target_token > 0 and n_original_token > 0:
        rate = min(target_token / n_original_token, 1.0)
    return max(0.0, 1.0 - rate)


def format_result(
    compressed_prompt: str,
    n_original_token: int,
    oai_tokenizer,
    return_word_label: bool = False,
    word_sep: str = "\t\t|\t\t",
    label_sep: str = " ",
    word_list: Optional[List[List[ScoredWord]]] = None,
    word_label_list: Optional[List[List[int]]] = None,
) -> CompressionResult:
    n_compressed_token = get_token_length(
        compressed_prompt, use_oai_tokenizer=True, oai_tokenizer=oai_tokenizer
    )
    logger.info(f"Compressed token count: {n_compressed_token}")

    ratio = (
        1 if n_compressed_token == 0 else n_original_token / n_compressed_token
    )
    res = CompressionResult(
        compressed_prompt=compressed_prompt,
        origin_tokens=n_original_token,
        compressed_tokens=n_compressed_token,
        ratio=f"{ratio:.1f}x",
        rate=f"{1 / ratio * 100:.1f}%",
        saving=f", Saving ${(n_original_token - n_compressed_token) * 0.06 / 1000:.1f} in GPT-4.",
    )

    if return_word_label and word_list is not None:
        words = []
        labels = []
        for w_list, l_list in zip(word_list, word_label_list):
            words.extend(w.text for w in w_list)
            labels.extend(l_list)
        res.fn_labeled_original_prompt = word_sep.join(
            [f"{word}{label_sep}{label}" for word, label in zip(words, labels)]
        )

    return res


def compress_prompt_pipeline(
    request: CompressionRequest,
    model,
    tokenizer,
    device,
    oai_tokenizer,
    max_seq_len,
    max_batch_size,
    special_tokens,
    added_tokens,
    adapter,
    cancel_token: Optional[CancellationToken] = None,
) -> CompressionResult:
    context = request.context
    logger.info(
        f"Compressing prompt. Characters: {len(context)}, Rate: {request.rate}, Target Token: {request.target_token}"
    )

    if not context:
        logger.debug("Empty context, nothing to compress.")
        return format_result("", 0, oai_tokenizer)

    check_cancelled(cancel_token, "tokenization")
    # 1. Prepare inputs
    context_chunked, token_map, n_original_token = prepare_tokens_and_chunks(
        context, request.force_tokens, tokenizer, added_tokens,
        request.chunk_end_tokens, max_seq_len, oai_tokenizer,
    )

    # 2. Effective rate
    reduce_rate = resolve_reduce_rate(request.rate, request.target_token, n_original_token)
    logger.debug(f"Effective reduce rate: {reduce_rate}")

    if reduce_rate <= 0:
        logger.debug("Reduce rate <= 0, returning context unchanged.")
        return format_result(context, n_original_token, oai_tokenizer)

    # 3. Token filtering
    compressed_chunks, word_list, word_label_list = compress_chunks(
        context_chunked,
        model=model,
        tokenizer=tokenizer,
        device=device,
        oai_tokenizer=oai_tokenizer,
        max_seq_len=max_seq_len,
        max_batch_size=max_batch_size,
        special_tokens=special_tokens,
        adapter=adapter,
        reduce_rate=reduce_rate,
        token_to_word=request.token_to_word,
        force_tokens=request.force_tokens,
        token_map=token_map,
        force_reserve_digit=request.force_reserve_digit,
        drop_consecutive=request.drop_consecutive,
        cancel_token=cancel_token,
    )

    # 4. Reassemble
    compressed_prompt = token_map.revert("\n".join(compressed_chunks))
    return format_result(
        compressed_prompt, n_original_token, oai_tokenizer,
        request.return_word_label, request.word_sep, request.label_sep,
        word_list, word_label_list,
    )
