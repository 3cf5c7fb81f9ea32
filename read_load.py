"""
read_load.py — simple async load script to follow redirects

Reads the `location` entries written by write_load.py, looks up the hash of
each shorten once (GET /api/shorten/{id}), then hammers the resolver
(GET /{hash}) with random picks from those hashes.

Usage:
  python read_load.py --base http://127.0.0.1:8080 --in shortens_created.jsonl --count 15000 --concurrency 200
"""
import argparse
import asyncio
import json
import random
import time
from datetime import datetime, timezone

import httpx

def _now_iso():
    return datetime.now(timezone.utc).isoformat()

def _load_locations(path):
    locations = []
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            try:
                obj = json.loads(line)
            except json.JSONDecodeError:
                continue
            loc = obj.get("location")
            if loc:
                locations.append(loc)
    return locations

async def _lookup_hash(client: httpx.AsyncClient, base: str, location: str):
    try:
        r = await client.get(f"{base}{location}", timeout=10)
        r.raise_for_status()
    except httpx.HTTPError:
        return None
    return r.json().get("hash")

async def _hit_one(client: httpx.AsyncClient, base: str, hash: str):
    try:
        r = await client.get(f"{base}/{hash}", follow_redirects=False, timeout=10)
    except httpx.HTTPError:
        return False
    return r.status_code == 307

async def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--base", default="http://127.0.0.1:8080")
    parser.add_argument("--in", dest="locations_file", default="shortens_created.jsonl")
    parser.add_argument("--count", type=int, default=15000)
    parser.add_argument("--concurrency", type=int, default=200)
    args = parser.parse_args()

    locations = _load_locations(args.locations_file)
    if not locations:
        print(f"No locations found in {args.locations_file}. Run write_load.py first.")
        return

    limit = httpx.Limits(max_connections=args.concurrency, max_keepalive_connections=args.concurrency)
    async with httpx.AsyncClient(limits=limit) as client:
        sem = asyncio.Semaphore(args.concurrency)

        async def _lookup(loc):
            async with sem:
                return await _lookup_hash(client, args.base, loc)

        hashes = [h for h in await asyncio.gather(*(_lookup(loc) for loc in locations)) if h]
        if not hashes:
            print("None of the recorded shortens could be looked up.")
            return

        start_iso = _now_iso()
        t0 = time.perf_counter()
        success = 0

        async def _task(i):
            nonlocal success
            async with sem:
                if await _hit_one(client, args.base, random.choice(hashes)):
                    success += 1

        await asyncio.gather(*(_task(i) for i in range(args.count)))

    dt = time.perf_counter() - t0
    print(f"START: {start_iso}")
    print(f"END:   {_now_iso()}")
    print(f"TOTAL: {dt:.3f} s")
    print(f"OPS:   reads={args.count}, ok={success}, fail={args.count - success}")
    if dt > 0:
        print(f"RPS:   {success/dt:.1f} req/s")

if __name__ == "__main__":
    asyncio.run(main())
