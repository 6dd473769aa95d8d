from typing import Iterator, List, Optional, Tuple

import torch
import torch.nn.functional as F
from torch.utils.data import DataLoader
from loguru import logger

from .adapters import WordAdapter
from .cancellation import CancellationToken, check_cancelled
from .dataset import TokenClfDataset
from .token_ops import ScoredWord, TokenMap, aggregate_word_probs, merge_token_to_word


def predict_token_probs(
    chunk_list: List[str],
    model,
    tokenizer,
    device,
    max_seq_len: int,
    max_batch_size: int,
    cancel_token: Optional[CancellationToken] = None,
) -> Iterator[Tuple[List[str], List[float]]]:
    """
    Yields, for every chunk in order, its active tokens and the probability
    of the "keep" class for each of them.
    """
    dataset = TokenClfDataset(
        chunk_list, tokenizer=tokenizer, max_len=max_seq_len
    )
    dataloader = DataLoader(
        dataset, batch_size=max_batch_size, shuffle=False, drop_last=False
    )

    with torch.no_grad():
        for batch_idx, batch in enumerate(dataloader):
            check_cancelled(cancel_token, f"inference batch {batch_idx}")
            ids = batch["ids"].to(device, dtype=torch.long)
            mask = batch["mask"].to(device, dtype=torch.long) == 1

            outputs = model(input_ids=ids, attention_mask=mask)
            probs = F.softmax(outputs.logits, dim=-1)

            for j in range(ids.shape[0]):
                _probs = probs[j, :, 1]
                _ids = ids[j]
                _mask = mask[j]

                active_probs = torch.masked_select(_probs, _mask)
                active_ids = torch.masked_select(_ids, _mask)

                tokens = tokenizer.convert_ids_to_tokens(active_ids.tolist())
                token_probs = active_probs.float().cpu().tolist()
                yield tokens, token_probs
            logger.trace(f"Processed inference batch {batch_idx} ({ids.shape[0]} chunks)")


def run_inference_on_chunks(
    chunk_list: List[str],
    model,
    tokenizer,
    device,
    max_seq_len,
    max_batch_size,
    special_tokens,
    adapter: WordAdapter,
    token_to_word="mean",
    force_tokens: Optional[List[str]] = None,
    token_map: Optional[TokenMap] = None,
    force_reserve_digit: bool = False,
    cancel_token: Optional[CancellationToken] = None,
) -> Iterator[List[ScoredWord]]:
    force_tokens = force_tokens or []
    token_map = token_map if token_map is not None else TokenMap()
    for tokens, token_probs in predict_token_probs(
        chunk_list, model, tokenizer, device, max_seq_len, max_batch_size, cancel_token
    ):
        words = merge_token_to_word(
            tokens,
            token_probs,
            force_tokens=force_tokens,
            token_map=token_map,
            force_reserve_digit=force_reserve_digit,
            special_tokens=special_tokens,
            adapter=adapter,
        )
        yield aggregate_word_probs(words, convert_mode=token_to_word)
