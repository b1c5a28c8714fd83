# reward_swap.py
# Bonding curve that converts anonymity points into reward tokens.
#
#   tokens = B - B / exp(A / W)
#   points = W * ln(B / (B - T))
#
# B is the pool's virtual token balance (18-decimal base units), A the
# points being swapped and W the pool weight. Arithmetic runs in
# decimal.Decimal at high precision; results are rounded half-up.

import logging
from decimal import ROUND_HALF_UP, Decimal, localcontext

from config import DEFAULT_CONFIG, ONE_YEAR
from tools import to_int

logger = logging.getLogger(__name__)

DECIMALS = Decimal(10) ** 18
POOL_WEIGHT = DEFAULT_CONFIG["pool_weight"]
PRECISION = 60

# |reverse_return(B, expected_return(B, A)) - A| stays below this many points.
REVERSE_TOLERANCE = 1
# one swap of A vs. two swaps of A/2 differ by less than this many base units.
ADDITIVITY_TOLERANCE = 1000


def _to_decimal(value, name):
    if isinstance(value, Decimal):
        number = value
    else:
        number = Decimal(to_int(value))
    if number < 0:
        raise ValueError("%s must be non-negative, got: %s" % (name, value))
    return number


def _round(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


def expected_return(balance, amount, pool_weight=POOL_WEIGHT) -> int:
    """
    Tokens received for `amount` points against a pool holding `balance`.

    Monotonically non-decreasing in amount, 0 for amount == 0, and always
    strictly below balance.
    """
    with localcontext() as ctx:
        ctx.prec = PRECISION
        b = _to_decimal(balance, "balance") / DECIMALS
        a = _to_decimal(amount, "amount")
        w = _to_decimal(pool_weight, "pool_weight")
        if w == 0:
            raise ValueError("pool_weight must be positive")
        tokens = b - b / (a / w).exp()
        return _round(tokens * DECIMALS)


def reverse_return(balance, tokens, pool_weight=POOL_WEIGHT) -> int:
    """
    Points needed to receive `tokens` from a pool holding `balance`.
    Raises ValueError when tokens >= balance (the curve never pays out the
    whole pool).
    """
    with localcontext() as ctx:
        ctx.prec = PRECISION
        b = _to_decimal(balance, "balance") / DECIMALS
        t = _to_decimal(tokens, "tokens") / DECIMALS
        w = _to_decimal(pool_weight, "pool_weight")
        if t >= b:
            raise ValueError("tokens must be below the pool balance")
        points = w * (b / (b - t)).ln()
        return _round(points)


class RewardSwap:
    """
    Off-chain model of the swap pool.

    - Virtual balance grows linearly from initial_liquidity to liquidity
      over `duration` seconds after start_timestamp:
        initial + (liquidity - initial) * elapsed / duration - tokens_sold
      and stays at liquidity - tokens_sold afterwards.
    - swap() prices points along the curve against the virtual balance at
      `now` and records the tokens sold.
    """

    def __init__(
        self,
        liquidity,
        initial_liquidity,
        pool_weight=POOL_WEIGHT,
        start_timestamp=0,
        duration=ONE_YEAR,
    ):
        self.liquidity = to_int(liquidity)
        self.initial_liquidity = to_int(initial_liquidity)
        if self.initial_liquidity > self.liquidity:
            raise ValueError("initial_liquidity cannot exceed liquidity")
        self.pool_weight = to_int(pool_weight)
        self.start_timestamp = to_int(start_timestamp)
        self.duration = to_int(duration)
        self.tokens_sold = 0

    @classmethod
    def from_config(cls, config, start_timestamp=0):
        swap_cfg = config["reward_swap"]
        return cls(
            liquidity=swap_cfg["liquidity"],
            initial_liquidity=swap_cfg["initial_liquidity"],
            pool_weight=config["pool_weight"],
            start_timestamp=start_timestamp,
            duration=swap_cfg.get("duration", ONE_YEAR),
        )

    def virtual_balance(self, now) -> int:
        elapsed = to_int(now) - self.start_timestamp
        if elapsed < 0:
            elapsed = 0
        if elapsed < self.duration:
            vested = (self.liquidity - self.initial_liquidity) * elapsed // self.duration
            return self.initial_liquidity + vested - self.tokens_sold
        return self.liquidity - self.tokens_sold

    def get_expected_return(self, points, now) -> int:
        return expected_return(self.virtual_balance(now), points, self.pool_weight)

    def swap(self, points, now) -> int:
        tokens = self.get_expected_return(points, now)
        self.tokens_sold += tokens
        logger.debug("[SWAP] %s points -> %s tokens, sold total = %s", points, tokens, self.tokens_sold)
        return tokens
