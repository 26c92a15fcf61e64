#!/usr/bin/env python3
# Copyright (c) 2024-2025 The CCTL developers
# Distributed under the MIT software license, see the accompanying
# file COPYING or https://www.opensource.org/licenses/mit-license.php .

#
# Exponential backoff with jitter, independent of any clock
#

import random

DEFAULT_INITIAL_INTERVAL = 0.5
DEFAULT_MULTIPLIER = 1.5
DEFAULT_RANDOMIZATION_FACTOR = 0.5
DEFAULT_MAX_INTERVAL = 60.0


def backoff_delay(attempt, initial_interval=DEFAULT_INITIAL_INTERVAL,
                  multiplier=DEFAULT_MULTIPLIER,
                  randomization_factor=DEFAULT_RANDOMIZATION_FACTOR,
                  max_interval=DEFAULT_MAX_INTERVAL, random_value=0.5):
    """
    Delay in seconds to wait after the given (zero-based) failed attempt.

    The interval grows as initial_interval * multiplier**attempt, capped at
    max_interval, and is then spread uniformly over
    [interval * (1 - randomization_factor), interval * (1 + randomization_factor)]
    by random_value, which must lie in [0, 1].
    """
    if attempt < 0:
        raise ValueError("attempt must be non-negative")
    if not 0.0 <= random_value <= 1.0:
        raise ValueError("random_value must lie in [0, 1]")
    interval = initial_interval
    for _ in range(attempt):
        interval *= multiplier
        if interval >= max_interval:
            interval = max_interval
            break
    delta = randomization_factor * interval
    return (interval - delta) + random_value * 2 * delta


class ExponentialBackoff:
    """Iterator of successive backoff delays drawing jitter from `rand`."""

    def __init__(self, initial_interval=DEFAULT_INITIAL_INTERVAL,
                 multiplier=DEFAULT_MULTIPLIER,
                 randomization_factor=DEFAULT_RANDOMIZATION_FACTOR,
                 max_interval=DEFAULT_MAX_INTERVAL, rand=random.random):
        self.initial_interval = initial_interval
        self.multiplier = multiplier
        self.randomization_factor = randomization_factor
        self.max_interval = max_interval
        self.rand = rand
        self.attempt = 0

    def reset(self):
        self.attempt = 0

    def __iter__(self):
        return self

    def __next__(self):
        delay = backoff_delay(self.attempt, self.initial_interval, self.multiplier,
                              self.randomization_factor, self.max_interval,
                              self.rand())
        self.attempt += 1
        return delay
