"""Order serial number generation.

Format: 14-digit local date-time (YYYYMMDDHHMMSS) followed by a random
alphanumeric token, e.g. ``20240301142233K7Q2ZD``. The store's unique index on
``order_sn`` is the final guard; the token only has to make collisions rare.
"""

import random
import string
from datetime import UTC, datetime, tzinfo

_ALPHABET = string.ascii_uppercase + string.digits


class SerialNumberGenerator:
    """Produces order serial numbers from a single long-lived random source.

    One instance is shared by the domain service for its whole lifetime, so
    the random source is seeded once from the OS instead of per call.
    """

    def __init__(self, token_length: int = 6, tz: tzinfo = UTC, rng: random.Random | None = None, clock=None):
        if token_length < 1:
            raise ValueError("token_length must be positive")
        self.token_length = token_length
        self._tz = tz
        self._rng = rng or random.SystemRandom()
        self._clock = clock or (lambda: datetime.now(UTC))

    def __call__(self) -> str:
        return self.next()

    def next(self) -> str:
        stamp = self._clock().astimezone(self._tz).strftime("%Y%m%d%H%M%S")
        token = "".join(self._rng.choice(_ALPHABET) for _ in range(self.token_length))
        return f"{stamp}{token}"
