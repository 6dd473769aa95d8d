class PromptPiperError(Exception):
    """Base class for every error raised by promptpiper."""


class ConfigurationError(PromptPiperError):
    """Unknown model, exhausted placeholder pool or an unsupported option."""


class DependencyError(PromptPiperError):
    """The model or tokenizer could not be loaded."""


class InputError(PromptPiperError):
    pass


class CompressionCancelled(PromptPiperError):
    pass
