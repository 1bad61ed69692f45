# throttlekit

Three thread-safe limiters that control how fast, and how much at once,
your code may do something:

- **`TokenBucket`** (`throttlekit.token_bucket`): starts full, allows bursts
  up to `burst` tokens and refills at `rate` tokens per second.
- **`LeakyBucket`** (`throttlekit.leaky_bucket`): starts empty, holds up to
  `capacity` requests and drains at `leak_rate` requests per second, which
  smooths traffic instead of allowing bursts.
- **`ConcurrencyLimiter`** (`throttlekit.concurrency`): a semaphore with
  batch permits, timeouts, cancellation, state inspection and a capacity that
  can be changed while it is in use.

The two rate limiters bound operations per unit of time; the concurrency
limiter bounds how many run at the same time. The package uses only the
standard library.

## Token bucket

```python
from throttlekit.token_bucket import TokenBucket, TokenBucketConfig
from throttlekit.clock import every

limiter = TokenBucket(10, 5)          # 10 tokens/second, burst of 5

if limiter.allow():                   # take one token if available
    ...

limiter.allow(3)                      # take three tokens at once, or none
print(limiter.tokens)                 # tokens available now

limiter.limit = 20                    # change the rate
limiter.burst = 10                    # change the burst size

# Rates can be given as an interval between events (seconds or timedelta):
slow = TokenBucket.from_config(
    TokenBucketConfig(rate=every(0.1), burst=5, initial_tokens=2)
)
```

`initial_tokens` of `None` or a negative number starts the bucket full. A
rate of `throttlekit.clock.INF` allows every request; a rate of `0` allows
only the tokens the bucket started with.

## Leaky bucket

```python
from throttlekit.leaky_bucket import LeakyBucket, LeakyBucketConfig

limiter = LeakyBucket(5, 10)          # drains 5/second, holds 10

if limiter.allow():
    ...

print(limiter.level, limiter.available, limiter.capacity, limiter.leak_rate)

limiter.leak_rate = 15
limiter.capacity = 20

configured = LeakyBucket.from_config(
    LeakyBucketConfig(leak_rate=5, capacity=8, initial_level=3)
)
```

`initial_level` of `None` or a negative number starts the bucket empty; a
level above `capacity` is clamped to it.

## Waiting and reservations

Both rate limiters can block until capacity frees up:

```python
import threading
from throttlekit.errors import WaitCancelled

stop = threading.Event()
try:
    limiter.wait(timeout=0.5, cancel=stop)
except TimeoutError:
    ...  # the timeout ran out first, or the request can never be met
except WaitCancelled:
    ...  # the cancel event was set
```

When a wait fails, the capacity it had booked is given back.

`reserve(n)` books capacity in advance, borrowing from the future if needed,
and returns a `throttlekit.reservation.Reservation`:

```python
reservation = limiter.reserve()
if reservation.ok:
    print(reservation.delay())        # seconds until it may proceed
    reservation.cancel()              # give the capacity back
```

`delay_from(now)` measures the delay from a given clock reading instead.

## Concurrency limiter

```python
from throttlekit.concurrency import ConcurrencyLimiter, ConcurrencyConfig

pool = ConcurrencyLimiter(3)

if pool.acquire():                    # non-blocking
    try:
        ...
    finally:
        pool.release()

pool.wait(2, timeout=1.0)             # block until two permits are taken
pool.release(2)

print(pool.capacity, pool.available, pool.in_use)
pool.capacity = 5                     # grow or shrink at run time

preloaded = ConcurrencyLimiter.from_config(
    ConcurrencyConfig(capacity=10, initial_available=5)
)
```

`wait` raises `TimeoutError` when the timeout runs out and `WaitCancelled`
when its `cancel` event is set. Releasing more permits than are in use raises
`ValueError`. Shrinking the capacity below current use leaves held permits in
use and sets `available` to zero.

## Testing with your own clock

The rate limiters read time through a `throttlekit.clock.Clock`: any object
with a `now()` method returning seconds as a float. The default is
`SystemClock`, backed by `time.monotonic()`. Pass your own clock as `clock=`
(or in the config) and advance it by hand instead of sleeping.

## Errors

Invalid settings, such as a negative rate or a burst or capacity below one,
raise `throttlekit.errors.ValidationError`, a `ValueError` that carries the
`component`, `field`, `value`, `message` and `hint`.

## What it does not do

The limiters keep their state in memory within one process and block threads;
they are not shared between processes or machines, have no asyncio interface,
and the package provides no command-line tool.