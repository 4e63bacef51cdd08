"""
Async HTTP Client Configuration

Provides a shared httpx.AsyncClient with connection pooling and
timeout presets for each external service.
"""

import httpx
from typing import Optional


# Timeout configurations (in seconds)
class Timeouts:
    """Timeout presets for external services."""
    TAVILY = 5.0        # Web search
    DEFILLAMA = 5.0     # Protocol TVL
    DEXSCREENER = 5.0   # On-chain pairs
    BIRDEYE = 5.0       # Token market + security
    OPENAI = 15.0       # Synthesis call

    CONNECT = 3.0


# Shared client instance (lazily initialized)
_client: Optional[httpx.AsyncClient] = None


async def get_client() -> httpx.AsyncClient:
    """Get the shared async HTTP client."""
    global _client
    if _client is None:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, connect=Timeouts.CONNECT),
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
            follow_redirects=True,
        )
    return _client


async def close_client():
    """Close the shared client (call on app shutdown)."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def get_timeout(service: str, override: Optional[float] = None) -> httpx.Timeout:
    """Get timeout configuration for a service."""
    if override is not None:
        return httpx.Timeout(override, connect=min(override, Timeouts.CONNECT))
    timeouts = {
        "tavily": Timeouts.TAVILY,
        "defillama": Timeouts.DEFILLAMA,
        "dexscreener": Timeouts.DEXSCREENER,
        "birdeye": Timeouts.BIRDEYE,
        "openai": Timeouts.OPENAI,
    }
    seconds = timeouts.get(service.lower(), 10.0)
    return httpx.Timeout(seconds, connect=Timeouts.CONNECT)
