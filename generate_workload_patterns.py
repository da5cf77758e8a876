#!/usr/bin/env python3
"""Concurrency primitives shared by the preload and operation engines"""
import threading
import time


class AtomicCounter:
    """
    Lock-protected integer counter.

    Writers publish with add(); readers always go through the same lock via
    the value property, so a reader never observes a count ahead of the
    statement it accounts for.
    """

    def __init__(self, initial=0):
        self._value = initial
        self._lock = threading.Lock()

    def add(self, delta=1):
        """
        Increment the counter.

        Returns:
            The new counter value
        """
        with self._lock:
            self._value += delta
            return self._value

    @property
    def value(self):
        with self._lock:
            return self._value


class RateLimiter:
    """
    Paces callers to a fixed number of operations per second.

    Uses virtual-time slot issuance: every acquire() reserves the next slot,
    spaced 1/rate seconds from the previous one, and sleeps until that slot
    arrives. After an idle period the slot clock is allowed to lag real time
    by at most (burst - 1) intervals, so no more than `burst` operations run
    back to back.
    """

    def __init__(self, rate, burst=1, clock=time.monotonic, sleep=time.sleep):
        """
        Args:
            rate: Target operations per second, must be positive
            burst: Maximum operations allowed without pacing after idle time
            clock: Monotonic clock returning seconds
            sleep: Function blocking for the given number of seconds
        """
        if rate <= 0:
            raise ValueError("rate must be positive, got {0}".format(rate))
        if burst < 1:
            raise ValueError("burst must be at least 1, got {0}".format(burst))
        self.rate = float(rate)
        self.burst = int(burst)
        self.interval = 1.0 / self.rate
        self._clock = clock
        self._sleep = sleep
        self._next_slot = None
        self._lock = threading.Lock()

    def acquire(self):
        """
        Block until the caller may run one operation.

        Returns:
            Seconds spent waiting
        """
        with self._lock:
            now = self._clock()
            earliest = now - (self.burst - 1) * self.interval
            if self._next_slot is None or self._next_slot < earliest:
                self._next_slot = earliest
            slot = self._next_slot
            self._next_slot = slot + self.interval
        wait = slot - now
        if wait > 0:
            self._sleep(wait)
            return wait
        return 0.0
