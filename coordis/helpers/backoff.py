from random import uniform

from typing_extensions import Literal

from coordis.errors import UnknownStrategy

BackoffStrategy = Literal["constant", "linear", "exponential"]


def compute_backoff(
    attempts: int,
    *,
    backoff_strategy: BackoffStrategy = "exponential",
    min_backoff: int = 1,
    max_backoff: int = 100,
    jitter: bool = True,
) -> tuple[int, int]:
    """Compute how long to wait before the next attempt at taking a lock.

    Parameters:
      attempts(int): The number of attempts there have been so far.
      backoff_strategy(str): One of ``constant``, ``linear`` or ``exponential``.
      min_backoff(int): The minimum backoff duration in milliseconds.
      max_backoff(int): The max number of milliseconds to backoff by.
      jitter(bool): If true adds a small random value to the backoff so that
        contending processes do not wake up in lockstep.

    Returns:
      tuple[int, int]: The new number of attempts and the backoff in milliseconds.
    """
    if backoff_strategy == "constant":
        backoff = min_backoff
    elif backoff_strategy == "linear":
        backoff = min((attempts + 1) * min_backoff, max_backoff)
    elif backoff_strategy == "exponential":
        backoff = min(min_backoff * 2**attempts, max_backoff)
    else:
        raise UnknownStrategy(f"Unknown backoff strategy: {backoff_strategy}")
    if jitter:
        jitter_factor = 1 / 4
        backoff = int(backoff * (1 - jitter_factor) + uniform(0, backoff) * jitter_factor)

    return attempts + 1, max(backoff, 1)
