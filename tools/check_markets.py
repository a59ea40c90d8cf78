"""Fetch both market sources once and report live vs fallback row counts."""
import asyncio

from cryptocarbon.market import (
    exchange_fallback,
    fetch_aggregator_snapshot,
    fetch_exchange_snapshot,
    load_fallback_markets,
    new_http_client,
)


async def main():
    async with new_http_client() as client:
        exchange = await fetch_exchange_snapshot(client)
        aggregator = await fetch_aggregator_snapshot(client)

    fallback_symbols = [c.symbol for c in exchange_fallback()]
    live = [c.symbol for c in exchange[:len(fallback_symbols)]] != fallback_symbols
    print(f"exchange:   {len(exchange):4d} rows ({'live' if live else 'fallback'})")

    fallback_count = len(load_fallback_markets())
    live = len(aggregator) != fallback_count
    print(f"aggregator: {len(aggregator):4d} rows ({'live' if live else 'fallback?'})")
    for c in exchange[:5]:
        print(f"  {c.symbol:<8} {c.price:>14,.4f}  {c.carbon_footprint}")


if __name__ == "__main__":
    asyncio.run(main())
