"""Thread-safe token bucket, leaky bucket and concurrency limiters."""

__version__ = "0.1.0"
__all__ = ["clock", "concurrency", "errors", "leaky_bucket", "reservation", "token_bucket"]