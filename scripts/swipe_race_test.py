"""Race test: fire simultaneous reciprocal likes and verify one match results.

Each round pairs four seeded users into two duos through the invite API, then
has both duos like each other at the same instant.  A round passes when at
least one response reports the match, every reported match id is the same,
and each duo lists exactly one match afterwards.

Usage: python -m scripts.swipe_race_test [--users demo_users.json] [--base-url http://localhost:8000]
"""
import argparse
import asyncio
import json
import statistics
import sys
import time
from typing import Any

import httpx


DEFAULT_BASE_URL = "http://localhost:8000"
DEFAULT_USERS_FILE = "demo_users.json"


def as_user(user_id: str) -> dict[str, str]:
    return {"X-User-Id": user_id}


async def form_duo(client: httpx.AsyncClient, base_url: str, inviter: str, invitee: str) -> str:
    """Pair two users via invite + accept; returns the duo id."""
    sent = await client.post(
        f"{base_url}/api/v1/duos/invites",
        json={"to_user_id": invitee},
        headers=as_user(inviter),
    )
    sent.raise_for_status()
    accepted = await client.post(
        f"{base_url}/api/v1/duos/invites/{sent.json()['id']}/accept",
        headers=as_user(invitee),
    )
    accepted.raise_for_status()
    return accepted.json()["id"]


async def like(client: httpx.AsyncClient, base_url: str, actor: str, source: str, target: str) -> dict:
    resp = await client.post(
        f"{base_url}/api/v1/swipes",
        json={"swiper_duo_id": source, "swiped_duo_id": target, "direction": "like"},
        headers=as_user(actor),
    )
    resp.raise_for_status()
    return resp.json()


async def run_round(client: httpx.AsyncClient, base_url: str, users: list[str]) -> tuple[bool, float, str]:
    duo_a = await form_duo(client, base_url, users[0], users[1])
    duo_b = await form_duo(client, base_url, users[2], users[3])

    t0 = time.monotonic()
    results = await asyncio.gather(
        like(client, base_url, users[0], duo_a, duo_b),
        like(client, base_url, users[2], duo_b, duo_a),
    )
    dt = time.monotonic() - t0

    match_ids = {r["match"]["id"] for r in results if r["is_match"]}
    if len(match_ids) != 1:
        return False, dt, f"expected one match id, got {sorted(match_ids)}"

    for duo_id, member in ((duo_a, users[0]), (duo_b, users[2])):
        listed = await client.get(f"{base_url}/api/v1/matches/duo/{duo_id}", headers=as_user(member))
        listed.raise_for_status()
        if len(listed.json()) != 1:
            return False, dt, f"duo {duo_id[:8]} lists {len(listed.json())} matches"
    return True, dt, ""


async def run_race_test(base_url: str, user_ids: list[str]) -> dict[str, Any]:
    rounds = len(user_ids) // 4
    print(f"\n{'='*60}")
    print(f"DuoMatch Swipe Race Test — {rounds} rounds")
    print(f"Target: {base_url}")
    print(f"{'='*60}\n")

    results: dict[str, Any] = {"rounds": rounds, "passed": 0, "errors": [], "timings": []}

    async with httpx.AsyncClient(timeout=30.0) as client:
        for i in range(rounds):
            group = user_ids[i * 4:(i + 1) * 4]
            try:
                ok, dt, reason = await run_round(client, base_url, group)
            except httpx.HTTPError as e:
                results["errors"].append(f"Round {i}: {e}")
                continue
            results["timings"].append(dt)
            if ok:
                results["passed"] += 1
            else:
                results["errors"].append(f"Round {i}: {reason}")

    print(f"Rounds passed: {results['passed']}/{rounds}")
    if results["timings"]:
        print(f"  mean swipe pair latency: {statistics.mean(results['timings']):.3f}s")
        print(f"  max swipe pair latency:  {max(results['timings']):.3f}s")
    for e in results["errors"][:10]:
        print(f"  - {e}")
    print(f"\n{'='*60}\n")
    return results


def main():
    parser = argparse.ArgumentParser(description="DuoMatch swipe race test")
    parser.add_argument("--users", type=str, default=DEFAULT_USERS_FILE, help="JSON file from scripts.seed_demo")
    parser.add_argument("--base-url", type=str, default=DEFAULT_BASE_URL, help="API base URL")
    args = parser.parse_args()

    with open(args.users, encoding="utf-8") as f:
        user_ids = [u["id"] for u in json.load(f)]
    if len(user_ids) < 4:
        print("FAIL: need at least 4 seeded users (and none of them already paired)")
        sys.exit(1)

    results = asyncio.run(run_race_test(args.base_url, user_ids))
    if results["passed"] != results["rounds"]:
        print("FAIL: concurrent reciprocal likes did not resolve to exactly one match")
        sys.exit(1)
    print("PASS: every race resolved to a single match")


if __name__ == "__main__":
    main()
