import os
import random
from typing import Sequence

import numpy as np
import torch


def seed_everything(seed: int) -> None:
    """
    Seeds Python, NumPy and PyTorch so repeated compressions of the same
    prompt on the same device produce the same output.

    :param seed: The integer value used to initialize all random number generators.
    :type seed: int
    :return: None
    """
    random.seed(seed)
    os.environ["PYTHONHASHSEED"] = str(seed)
    np.random.seed(seed)
    torch.manual_seed(seed)
    torch.cuda.manual_seed_all(seed)
    torch.backends.cudnn.deterministic = True
    torch.backends.cudnn.benchmark = False


def percentile(values: Sequence[float], p: float) -> float:
    """
    Returns the p-th percentile (0 <= p <= 100) of `values`.

    Values are sorted ascending and the result is linearly interpolated
    between the two neighbouring ranks around position ``n * p / 100 + 0.5``
    (1-based, the "hazen" rule), so that
    ``percentile([7, 15, 36, 39, 40, 41], 25) == 15`` and
    ``percentile([7, 15, 36, 39, 40, 41], 50) == 37.5``.
    An empty input yields 0.

    :param values: Source data, left unmodified.
    :param p: Desired percentile in the 0-100 range.
    :raises ValueError: If `p` is outside the 0-100 range.
    """
    if not 0 <= p <= 100:
        raise ValueError(f"Percentile must be within [0, 100], got {p}")
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=np.float64), p, method="hazen"))
