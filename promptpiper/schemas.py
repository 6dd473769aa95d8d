from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator


class CompressionRequest(BaseModel):
    """
    Options for a single compression call.
    Mirrors arguments of PromptCompressor.compress_prompt.
    """
    context: str = Field("", description="The prompt text to compress.")
    rate: float = Field(0.5, gt=0.0, le=1.0, description="Share of tokens to keep, in (0, 1].")
    target_token: int = Field(-1, description="Target token count. If > 0, overrides rate.")
    token_to_word: Literal["mean", "first"] = "mean"
    force_tokens: List[str] = Field(default_factory=list)
    force_reserve_digit: bool = False
    drop_consecutive: bool = Field(False, description="Accepted for compatibility; has no effect on selection.")
    chunk_end_tokens: List[str] = Field(default_factory=lambda: [".", "\n"])
    return_word_label: bool = False
    word_sep: str = "\t\t|\t\t"
    label_sep: str = " "

    @field_validator("force_tokens")
    @classmethod
    def _dedupe_force_tokens(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


class CompressPromptRequest(CompressionRequest):
    """Request model for the compress_prompt endpoint."""
    model: Optional[str] = Field(None, description="Registry key of the model to use. Defaults to the configured model.")


class CompressionResult(BaseModel):
    compressed_prompt: str
    origin_tokens: int
    compressed_tokens: int
    ratio: str
    rate: str
    saving: str
    fn_labeled_original_prompt: Optional[str] = None
