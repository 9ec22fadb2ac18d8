#!/usr/bin/env python3
"""
Generate a sample student export for trying out the leaderboard.

Writes ``data/sample_cohort.json`` in the ``sgpa_list`` shape accepted by
``cohort-leaderboard import``. Scores are drawn from a small set of values
so every cohort has plenty of ties.
"""

import json
import os
import random

OUTPUT_PATH = "data/sample_cohort.json"

COHORTS = {
    2021: {"students": 40, "terms": 6},
    2022: {"students": 60, "terms": 4},
    2023: {"students": 35, "terms": 2},
}

FIRST_NAMES = [
    "Aarav", "Asha", "Bala", "Chen", "Dev", "Esha", "Farid", "Gita", "Hari",
    "Ira", "Jon", "Kavya", "Leo", "Mira", "Nikhil", "Omar", "Priya", "Rohan",
]
LAST_NAMES = ["Iyer", "Khan", "Mehta", "Nair", "Patel", "Rao", "Shah", "Singh"]

SCORES = [0.0, 5.5, 6.0, 6.5, 7.0, 7.25, 7.5, 8.0, 8.25, 8.5, 8.75, 9.0, 9.5, 10.0]


def make_student(rng: random.Random, year: int, index: int, max_terms: int) -> dict:
    # Some students drop out early, so not everyone reaches the latest term.
    completed = rng.choice([max_terms] * 4 + list(range(0, max_terms)))
    return {
        "seat_number": f"{year % 100:02d}{index:04d}",
        "name": f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}",
        "admission_year": year,
        "sgpa_list": [
            {"semester": term, "sgpa": rng.choice(SCORES)}
            for term in range(1, completed + 1)
        ],
    }


def main():
    rng = random.Random(2024)
    students = []
    for year, shape in COHORTS.items():
        for index in range(1, shape["students"] + 1):
            students.append(make_student(rng, year, index, shape["terms"]))

    os.makedirs(os.path.dirname(OUTPUT_PATH), exist_ok=True)
    with open(OUTPUT_PATH, "w") as f:
        json.dump(students, f, indent=2)

    print(f"\nGenerated {len(students)} students in {OUTPUT_PATH}")
    for year, shape in COHORTS.items():
        print(f"  {year}: {shape['students']} students, up to {shape['terms']} terms")
    print(f"\nLoad them with: cohort-leaderboard import {OUTPUT_PATH}\n")


if __name__ == "__main__":
    main()
