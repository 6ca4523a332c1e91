# services/cache_stats.py
from typing import Dict, Any
from redis.asyncio import Redis

# one hash, fields "<namespace>:hits" / "<namespace>:misses"
STATS_HASH = "cache_stats"

def _ratio(hits: int, misses: int) -> float:
    return round(hits / max(1, hits + misses) * 100, 2)

async def hit(r: Redis, namespace: str) -> None:
    await r.hincrby(STATS_HASH, f"{namespace}:hits", 1)

async def miss(r: Redis, namespace: str) -> None:
    await r.hincrby(STATS_HASH, f"{namespace}:misses", 1)

async def get_stats(r: Redis) -> Dict[str, Any]:
    """Hit/miss counters per namespace plus overall totals."""
    raw = await r.hgetall(STATS_HASH) or {}
    namespaces: Dict[str, Dict[str, Any]] = {}
    for field, value in raw.items():
        ns, _, kind = field.rpartition(":")
        if kind not in ("hits", "misses"):
            continue
        counters = namespaces.setdefault(ns, {"hits": 0, "misses": 0})
        counters[kind] = int(value)

    for counters in namespaces.values():
        counters["hit_ratio"] = _ratio(counters["hits"], counters["misses"])

    total_hits = sum(c["hits"] for c in namespaces.values())
    total_misses = sum(c["misses"] for c in namespaces.values())
    return {
        "namespaces": namespaces,
        "totals": {"hits": total_hits, "misses": total_misses, "hit_ratio": _ratio(total_hits, total_misses)},
    }

async def reset_stats(r: Redis) -> None:
    await r.delete(STATS_HASH)
