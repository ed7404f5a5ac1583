import math

from psycopg.rows import dict_row

from app.database.connection import get_connection
from app.database.exceptions import RecordStoreError
from app.ratelimit.base import BaseRateLimiter, RateLimitDecision


class PostgresRateLimiter(BaseRateLimiter):
    """Fixed-window limiter shared across processes via the rate_limits table.

    The window is reset and counted in a single upsert so concurrent callers
    never read a stale count.
    """

    async def check(self, key: str) -> RateLimitDecision:
        async with get_connection() as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(
                    """
                    INSERT INTO rate_limits (key, count, reset_at)
                    VALUES (%(key)s, 1, NOW() + make_interval(secs => %(window)s))
                    ON CONFLICT (key) DO UPDATE SET
                        count = CASE
                            WHEN rate_limits.reset_at < NOW() THEN 1
                            ELSE rate_limits.count + 1
                        END,
                        reset_at = CASE
                            WHEN rate_limits.reset_at < NOW()
                                THEN NOW() + make_interval(secs => %(window)s)
                            ELSE rate_limits.reset_at
                        END
                    RETURNING count,
                              EXTRACT(EPOCH FROM (reset_at - NOW())) AS seconds_left
                    """,
                    {"key": key, "window": float(self._window_seconds)},
                )
                row = await cur.fetchone()
            await conn.commit()

        if row is None:
            raise RecordStoreError(f"Rate limit upsert for {key} returned no row")
        count = row["count"]
        if count > self._max_requests:
            return RateLimitDecision(
                allowed=False,
                remaining=0,
                retry_after_seconds=max(0, math.ceil(float(row["seconds_left"]))),
            )
        return RateLimitDecision(allowed=True, remaining=self._max_requests - count)
