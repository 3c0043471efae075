"""Reference client that runs a brawl through the Walker Table REST API.

Seats a survivor and a raider, starts a brawl, and plays rounds with
simple plans until one side is Broken:
  - The survivor takes cover in round one, then shoots the raider.
  - The raider closes in and fights hand to hand.

Usage:
    1. Start the server:  uvicorn main:app --reload
    2. Run this client:   python bots/example_table.py
"""

import sys

import httpx

BASE_URL = "http://127.0.0.1:8000"
MAX_ROUNDS = 10
PHASES_PER_ROUND = 6

SURVIVOR = {
    "id": "abby",
    "name": "Abby",
    "attributes": {"Strength": 2, "Agility": 4, "Wits": 3, "Empathy": 2},
    "skills": {"Mobility": 2, "Ranged Combat": 2, "Close Combat": 1},
    "inventory": [
        {
            "id": "rifle",
            "name": "Hunting Rifle",
            "type": "Ranged",
            "bonus": 2,
            "damage": 2,
            "equipped": True,
        }
    ],
}

RAIDER = {
    "id": "raider",
    "name": "Whisperer Scout",
    "skill_expertise": {"Close Combat": "Trained", "Mobility": "Trained"},
    "damage": 1,
}


def _plan(client: httpx.Client, combatant_id: str, action: dict) -> None:
    resp = client.post("/encounter/brawl/plan", json={"combatant_id": combatant_id, "action": action})
    if resp.status_code == 400:
        print(f"  plan rejected: {resp.json()['detail']}")
        return
    resp.raise_for_status()


def _print_events(events: list[dict]) -> None:
    for event in events:
        roll = event.get("roll")
        if roll:
            dice = roll["base_dice"] + roll["stress_dice"]
            print(f"    {event['description']} {dice} -> {roll['successes']} successes")
        else:
            print(f"    {event['description']}")


def main() -> None:
    """Run one brawl from start to finish."""
    client = httpx.Client(base_url=BASE_URL, timeout=10.0)

    print("Seating the table...")
    client.post("/encounter/characters", json=SURVIVOR).raise_for_status()
    client.post("/encounter/npcs", json=RAIDER).raise_for_status()

    state = client.get("/encounter").json()
    if state["status"] == "active":
        print("A fight is already running; ending it first.")
        client.post("/encounter/end").raise_for_status()

    resp = client.post(
        "/encounter/brawl/start",
        json={
            "participants": [
                {"id": "abby", "type": "PC", "team": "A", "range": "Long"},
                {"id": "raider", "type": "NPC", "team": "B", "range": "Long"},
            ]
        },
    )
    if resp.status_code != 200:
        print(f"Could not start the brawl: {resp.text}")
        sys.exit(1)
    _print_events(resp.json()["events"])

    encounter = resp.json()["encounter"]
    for round_number in range(1, MAX_ROUNDS + 1):
        print(f"\n--- Round {round_number} ---")
        if round_number == 1:
            _plan(client, "abby", {"type": "TakeCover"})
            _plan(client, "raider", {"type": "Move", "destination": "Short"})
        else:
            _plan(client, "abby", {"type": "RangedAttack", "target_id": "raider"})
            _plan(client, "raider", {"type": "CloseAttack", "target_id": "abby"})

        for _ in range(PHASES_PER_ROUND):
            brawl = encounter["brawl"]
            resp = client.post(
                "/encounter/brawl/resolve",
                json={"round": brawl["round"], "phase_index": brawl["current_phase_index"]},
            )
            resp.raise_for_status()
            _print_events(resp.json()["events"])
            encounter = resp.json()["encounter"]
            if encounter["status"] == "completed":
                print("\nThe fight is over.")
                client.post("/encounter/end").raise_for_status()
                return

    print("\nNobody fell. Ending the brawl.")
    client.post("/encounter/end").raise_for_status()


if __name__ == "__main__":
    main()
