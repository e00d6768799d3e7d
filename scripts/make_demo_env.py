"""Generate a .env file with a demo configuration.

Invents people (with access tokens), neighbourhood groups and places to eat
using faker with a fixed seed, so the server can be tried out locally
without writing the JSON variables by hand.

Usage:
    python scripts/make_demo_env.py
    python scripts/make_demo_env.py --people 5 --groups 3 -o demo.env
"""

import argparse
import json
import random
import secrets
from pathlib import Path

from faker import Faker

DEFAULT_OUTPUT = Path(__file__).parent.parent / ".env"

SEED = 20260214

PERIODS = {
    "breakfast": [0, 10],
    "lunch": [10, 15],
    "dinner": [15, 0],
}

WEEKDAYS = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]


def _clean(text: str) -> str:
    # "|" separates group and name in forms; quotes would break the .env quoting.
    return text.replace("|", " ").replace("'", "")


def generate_people(fake: Faker, count: int) -> dict[str, str]:
    """Map distinct first names to random URL-safe tokens."""
    people: dict[str, str] = {}
    while len(people) < count:
        name = _clean(fake.first_name())
        if name not in people:
            people[name] = secrets.token_urlsafe(16)
    return people


def generate_schedule(rng: random.Random) -> dict[str, list[str]]:
    """Pick the days and meals a place is open."""
    schedule = {}
    for day in WEEKDAYS:
        periods = [p for p in PERIODS if rng.random() < 0.6]
        if periods:
            schedule[day] = periods
    return schedule


def generate_entries(fake: Faker, rng: random.Random, groups: int, per_group: int) -> dict:
    """Build the ENTRIES structure: {group: {name: {"cost": n, "open": {...}}}}."""
    entries: dict[str, dict] = {}
    while len(entries) < groups:
        group = _clean(fake.city())
        if group in entries:
            continue
        places: dict[str, dict] = {}
        while len(places) < per_group:
            name = f"{_clean(fake.last_name())} {rng.choice(['Diner', 'Bistro', 'Grill', 'Cafe', 'Kitchen'])}"
            places[name] = {
                "cost": rng.randint(1, 4),
                "open": generate_schedule(rng),
            }
        entries[group] = places
    return entries


def main():
    parser = argparse.ArgumentParser(
        description="Generate a demo .env configuration")
    parser.add_argument("--people", type=int, default=4,
                        help="Number of people (default: 4)")
    parser.add_argument("--groups", type=int, default=2,
                        help="Number of groups (default: 2)")
    parser.add_argument("--per-group", type=int, default=4,
                        help="Entries per group (default: 4)")
    parser.add_argument("--port", type=int, default=8080,
                        help="Port to listen on (default: 8080)")
    parser.add_argument("--timezone", default="UTC",
                        help="IANA timezone name (default: UTC)")
    parser.add_argument("-o", "--output", default=str(DEFAULT_OUTPUT),
                        help=f"Output path (default: {DEFAULT_OUTPUT})")
    args = parser.parse_args()

    fake = Faker(["en_US", "en_GB"])
    Faker.seed(SEED)
    rng = random.Random(SEED)

    people = generate_people(fake, args.people)
    entries = generate_entries(fake, rng, args.groups, args.per_group)

    variables = {
        "PORT": str(args.port),
        "TIMEZONE": args.timezone,
        "PEOPLE": json.dumps(people),
        "ENTRIES": json.dumps(entries),
        "PERIODS": json.dumps(PERIODS),
        "GROUP_ORDER": json.dumps(sorted(entries)),
        "DB_PATH": "db.json",
        "PERSIST_INTERVAL": "1m",
    }

    output_path = Path(args.output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    lines = [f"{key}='{value}'" for key, value in variables.items()]
    output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    print(f"Written to {output_path}")
    for person, token in people.items():
        print(f"  {person}: /?token={token}")


if __name__ == "__main__":
    main()
