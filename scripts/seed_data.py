#!/usr/bin/env python3
"""
Seed script — creates a realistic dataset for exploring the profile feed.

Creates:
  • 12 users, each with a profile and 2-4 interest tags
  • A follow graph (each user follows 3-5 others)
  • Likes across profiles (each user likes 2-6 others)

Run after docker compose up:
  python scripts/seed_data.py --api-url http://localhost:8000

Every account uses the password "password123"; a ready-made bearer token
is printed at the end for curl commands.
"""
import argparse
import json
import random
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Optional

PASSWORD = "password123"

BASE_USERS = [
    ("alice", "Alice Chen", "ML engineer", ["machine learning", "chess", "hiking"]),
    ("bob", "Bob Martinez", "Backend developer", ["distributed systems", "cycling"]),
    ("carol", "Carol Singh", "Data scientist", ["machine learning", "painting", "chess"]),
    ("dave", "Dave Kim", "Product designer", ["design", "photography"]),
    ("eve", "Eve Johnson", "Security researcher", ["security", "climbing", "chess"]),
    ("frank", "Frank Williams", "SRE", ["kubernetes", "hiking", "cooking"]),
    ("grace", "Grace Li", "Graph databases", ["graphs", "go", "painting"]),
    ("henry", "Henry Brown", "HPC engineer", ["performance", "cycling"]),
    ("iris", "Iris Davis", "Infrastructure lead", ["kubernetes", "photography", "hiking"]),
    ("jack", "Jack Wilson", "Frontend developer", ["design", "music"]),
    ("kara", "Kara Osei", "Mobile developer", ["music", "climbing", "cooking"]),
    ("liam", "Liam Novak", "Student", ["chess", "go", "machine learning"]),
]

SAMPLE_BIOS = [
    "Building things on weekends, breaking them on weekdays.",
    "Coffee first, then code review.",
    "Always looking for a new trail or a new side project.",
    "Happiest when the tests are green and the sky is blue.",
    "Reading papers so you don't have to.",
    "Part-time tinkerer, full-time learner.",
]


@dataclass
class ApiClient:
    base_url: str

    def _send(self, method: str, path: str, data: Optional[dict] = None, token: Optional[str] = None) -> dict:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        body = json.dumps(data).encode() if data is not None else None
        req = urllib.request.Request(url, data=body, headers=headers, method=method)
        try:
            with urllib.request.urlopen(req, timeout=10) as resp:
                return json.loads(resp.read())
        except urllib.error.HTTPError as e:
            print(f"  HTTP {e.code} on {method} {path}: {e.read().decode()}")
            return {}

    def post(self, path: str, data: Optional[dict] = None, token: Optional[str] = None) -> dict:
        return self._send("POST", path, data, token)

    def get(self, path: str, token: Optional[str] = None) -> dict:
        return self._send("GET", path, token=token)


def wait_for_api(client: ApiClient, retries: int = 15) -> None:
    print(f"Waiting for API at {client.base_url} ...")
    for _ in range(retries):
        try:
            result = client.get("/health")
            if result.get("status") == "ok":
                print("  API is ready!\n")
                return
        except (urllib.error.URLError, OSError):
            pass
        time.sleep(3)
    raise RuntimeError(f"API not reachable at {client.base_url} after {retries} retries")


@dataclass
class SeededUser:
    handle: str
    user_id: str
    profile_id: str
    token: str


def create_users(client: ApiClient) -> list[SeededUser]:
    print("Creating users...")
    users: list[SeededUser] = []
    for handle, name, headline, interests in BASE_USERS:
        result = client.post(
            "/api/auth/signup",
            {
                "email": f"{handle}@example.com",
                "password": PASSWORD,
                "name": name,
                "headline": headline,
                "bio": random.choice(SAMPLE_BIOS),
                "interests": interests,
            },
        )
        if not result:
            # Already seeded: log in instead
            result = client.post(
                "/api/auth/login", {"email": f"{handle}@example.com", "password": PASSWORD}
            )
        user = result.get("user") or {}
        profile = user.get("profile") or {}
        if user.get("id") and profile.get("id"):
            users.append(SeededUser(handle, user["id"], profile["id"], result["accessToken"]))
            print(f"  ✓ {handle} ({user['id']})")
        else:
            print(f"  ✗ Failed to create {handle}")
    return users


def main(api_url: str) -> None:
    client = ApiClient(api_url)
    wait_for_api(client)

    users = create_users(client)
    if len(users) < 2:
        print("Not enough users created — aborting")
        return

    # ── Follow graph ──────────────────────────────────────────────────────
    # Follow and like are toggles, so re-running the script flips edges
    print("\nCreating follow relationships...")
    follows = 0
    for follower in users:
        others = [u for u in users if u.user_id != follower.user_id]
        for target in random.sample(others, k=min(random.randint(3, 5), len(others))):
            result = client.post(f"/api/feed/{target.user_id}/follow", token=follower.token)
            follows += int(bool(result.get("following")))
    print(f"  ✓ {follows} follows created")

    # ── Likes ─────────────────────────────────────────────────────────────
    print("\nAdding likes...")
    likes = 0
    for liker in users:
        others = [u for u in users if u.user_id != liker.user_id]
        for target in random.sample(others, k=min(random.randint(2, 6), len(others))):
            result = client.post(f"/api/feed/{target.profile_id}/like", token=liker.token)
            likes += int(bool(result.get("liked")))
    print(f"  ✓ {likes} likes added")

    trending = client.get("/api/feed/trending/interests").get("trending", [])
    print("\nTrending interests: " + ", ".join(f"{t['interest']} ({t['count']})" for t in trending[:5]))

    # ── Print summary ─────────────────────────────────────────────────────
    first = users[0]
    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    print(f"export TOKEN={first.token}\n")
    print(f"# Feed as '{first.handle}', filtered by interest:")
    print(f"  curl -s -H \"Authorization: Bearer $TOKEN\" '{api_url}/api/feed?interests=chess,hiking' | python3 -m json.tool\n")
    print("# Search the feed anonymously:")
    print(f"  curl -s '{api_url}/api/feed?search=engineer&limit=5' | python3 -m json.tool\n")
    print(f"# Toggle a follow on '{users[1].handle}':")
    print(f"  curl -s -X POST -H \"Authorization: Bearer $TOKEN\" '{api_url}/api/feed/{users[1].user_id}/follow' | python3 -m json.tool\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print("# Check Prometheus: http://localhost:9090")
    print("# Check MinIO: http://localhost:9001 (minioadmin/minioadmin)")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Social Profile API")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL")
    args = parser.parse_args()
    main(args.api_url)
