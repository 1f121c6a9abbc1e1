# fluvio_future

Small, dependable async building blocks for `asyncio` programs.

## Installation

```
pip install fluvio_future
```

The only runtime dependency is `cryptography`, which is used to load certificates and keys.

## What's inside

- `fluvio_future.retry`: the retry strategies `FixedDelay`, `FibonacciBackoff` and `ExponentialBackoff`, the helpers `retry`, `retry_if` and `timeout`, and the exception `RetryTimeoutError`.
- `fluvio_future.timer`: `sleep` and `after`.
- `fluvio_future.task`: `run`, `run_block_on`, `spawn` and `spawn_blocking`.
- `fluvio_future.subscriber`: `init_logger` and `init_tracer`, which set up logging to stderr.
- `fluvio_future.doomsday`: `DoomsdayTimer`, a watchdog that raises `DoomsdayExplosion` or exits the process when it is not reset in time.
- `fluvio_future.file_slice`: `AsyncFileSlice`, a region of an open file given by its file descriptor.
- `fluvio_future.fs`: helpers for opening files, plus `as_slice`, `raw_slice`, `reset_to_beginning` and `write_buf_all`.
- `fluvio_future.bounded`: `BoundedFileSink`, a file writer that keeps count of the bytes written and checks them against a limit set in `BoundedFileOption`.
- `fluvio_future.memory_map`: `MemoryMappedMutFile` and `MemoryMappedFile`.
- `fluvio_future.zero_copy`: `ZeroCopy`, which sends a file slice to a socket with `sendfile`.
- `fluvio_future.shared_file`: `SharedAsyncFile`, a file handle that several readers can share, guarded by a lock.
- `fluvio_future.certificate`: `Certificate` and `PrivateKey`.
- `fluvio_future.net`: `stream` and `stream_with_opts`, with the options classes `SocketOpts` and `KeepaliveOpts`, and the connectors `DefaultTcpDomainConnector` and `CertBuilder`.
- `fluvio_future.tls`: `ConnectorBuilder`, `AcceptorBuilder`, `TlsConnector`, `TlsAcceptor`, `TlsAnonymousConnector`, `TlsDomainConnector`, and the certificate loaders.

## Retrying an operation

`retry` and `retry_if` take an iterable of delays in seconds and a factory that returns a new awaitable for each attempt. The operation runs once, and then once more after each delay until the delays run out. When every attempt fails, the last error is raised.

```python
import asyncio
from fluvio_future.retry import FixedDelay, retry

attempts = 0

async def operation():
    global attempts
    attempts += 1
    raise FileNotFoundError("missing")

async def main():
    delays = (d for _, d in zip(range(2), FixedDelay.from_millis(100)))
    try:
        await retry(delays, operation)
    except FileNotFoundError:
        pass
    print(attempts)  # 3: the first attempt and two retries

asyncio.run(main())
```

`retry_if` also takes a condition. When the condition returns false for an error, that error is raised at once and no further attempts are made.

## Backoff strategies

Each strategy is an endless iterator of delays:

```python
from itertools import islice
from fluvio_future.retry import FibonacciBackoff, ExponentialBackoff

list(islice(FibonacciBackoff.from_millis(10), 6))
# delays of 10, 10, 20, 30, 50 and 80 milliseconds

list(islice(ExponentialBackoff.from_millis(2), 3))
# delays of 2, 4 and 8 milliseconds
```

Call `max_delay(...)` to set a limit: no delay the iterator returns will be longer than it.

## Time limits

```python
from fluvio_future.retry import timeout, RetryTimeoutError
from fluvio_future.timer import sleep

try:
    await timeout(sleep(10), 1)
except RetryTimeoutError:
    ...
```

## Watchdog timer

```python
from fluvio_future.doomsday import DoomsdayTimer

timer, handle = DoomsdayTimer.spawn(5.0, False)
await timer.reset()   # call at least every five seconds
timer.defuse()        # stop the timer for good
```