from torch.utils.data import Dataset
import torch
from loguru import logger


class TokenClfDataset(Dataset):
    """Fixed-length, padded token-id tensors for a list of chunk texts."""

    def __init__(
            self,
            texts,
            max_len=512,
            tokenizer=None,
    ):
        logger.trace(f"Initializing TokenClfDataset with {len(texts)} texts, max_len={max_len}")
        self.len = len(texts)
        self.texts = texts
        self.tokenizer = tokenizer
        self.max_len = max_len
        self.cls_token = tokenizer.cls_token
        self.sep_token = tokenizer.sep_token
        self.pad_token = tokenizer.pad_token

    def __getitem__(self, index):
        text = self.texts[index]
        tokenized_text = self.tokenizer.tokenize(text)

        tokenized_text = (
                [self.cls_token] + tokenized_text + [self.sep_token]
        )  # add special tokens

        if len(tokenized_text) > self.max_len:
            tokenized_text = tokenized_text[: self.max_len]
        n_active = len(tokenized_text)
        tokenized_text = tokenized_text + [
            self.pad_token for _ in range(self.max_len - n_active)
        ]

        attn_mask = [1] * n_active + [0] * (self.max_len - n_active)

        ids = self.tokenizer.convert_tokens_to_ids(tokenized_text)

        return {
            "ids": torch.tensor(ids, dtype=torch.long),
            "mask": torch.tensor(attn_mask, dtype=torch.long),
        }

    def __len__(self):
        return self.len
