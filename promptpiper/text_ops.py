from typing import Collection, List, Sequence

from loguru import logger


def get_token_length(
        text: str,
        tokenizer=None,
        oai_tokenizer=None,
        add_special_tokens: bool = True,
        use_oai_tokenizer: bool = False,
) -> int:
    if use_oai_tokenizer and oai_tokenizer is not None:
        return len(oai_tokenizer.encode(text, disallowed_special=()))
    else:
        return len(
            tokenizer(text, add_special_tokens=add_special_tokens).input_ids
        )


def chunk_tokens(
        tokens: Sequence[str],
        max_len: int,
        chunk_end_tokens: Collection[str],
) -> List[List[str]]:
    """
    Splits `tokens` into windows of at most `max_len` tokens. Each window is
    cut right after the last chunk-end token it contains; a window without
    one is cut at exactly `max_len` tokens.
    """
    if max_len <= 0:
        raise ValueError(f"max_len must be positive, got {max_len}")
    chunks = []
    n = len(tokens)
    st = 0
    while st < n:
        if n - st <= max_len:
            chunks.append(list(tokens[st:n]))
            break
        ed = st + max_len - 1
        for j in range(ed, st - 1, -1):
            if tokens[j] in chunk_end_tokens:
                ed = j
                break
        chunks.append(list(tokens[st: ed + 1]))
        st = ed + 1
    return chunks


def chunk_context(origin_text, chunk_end_tokens, tokenizer, max_seq_len):
    # leave 2 token for CLS and SEP
    max_len = max_seq_len - 2
    origin_tokens = tokenizer.tokenize(origin_text)
    token_chunks = chunk_tokens(origin_tokens, max_len, chunk_end_tokens)
    logger.debug(f"Chunked {len(origin_tokens)} tokens into {len(token_chunks)} chunks (max_len={max_len})")
    return [tokenizer.convert_tokens_to_string(chunk) for chunk in token_chunks]
