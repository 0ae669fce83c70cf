#!/usr/bin/env python3
"""
Secret Santa matcher for households, with email delivery.

Constraints:
  1) No one gifts to themselves.
  2) No one gifts to someone at their own address, unless
     "allow_same_residence_exchange" is true in the config rules.
  3) A person may name a proxy actor ("actor_id") who gets the email for them.

INPUTS (paths in config.json are relative to the config file):
  - config.json           : data_file, html_template_file, rules, smtp, ...
  - data.json             : list of addresses, each with its residents
  - template.html         : email body with $placeholders

OUTPUT:
  - one email per assignment, sent to the giver (or the giver's proxy actor)
  - output_html/<id>.html : rendered emails, when "write_html_files" is true

Run:
  python Secret_santa.py config.json
Options:
  python Secret_santa.py config.json --seed 42 --max-attempts 1000 --dry-run

Notes:
  - The matcher reshuffles and retries on a dead end instead of backtracking.
    Tight rules (everyone at one address, no same-residence exchange) can make
    a draw impossible; it gives up after --max-attempts draws.
"""

from __future__ import annotations

import argparse
import logging
import random
import re
import sys
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from SendEmails import send_assignments
from santa_models import (
    Address,
    Assignment,
    AssignmentExhaustedError,
    ConfigError,
    DataFileError,
    Resident,
    SantaConfig,
    SecretSantaError,
)

MAX_ATTEMPTS = 1000

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_ADDRESS_FIELDS = ("address", "city", "state", "zipcode")
_PERSON_FIELDS = ("first_name", "last_name", "public_name", "email")
# end up in the email "To" header
_HEADER_FIELDS = ("public_name", "email")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")

_ADDRESS_LIST = TypeAdapter(List[Address])

T = TypeVar("T")

# ---------------------------
# Loading & validation
# ---------------------------

def setup_logging(debug: bool) -> None:
    """Configure console logging; ``debug`` comes from ``enable_debug_messages``."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        force=True,
    )


def load_config(path: Path) -> SantaConfig:
    """Read config.json and resolve its file paths against the config's folder."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f'Error reading configuration file "{path}": {e}') from e
    try:
        config = SantaConfig.model_validate_json(text)
    except ValidationError as e:
        raise ConfigError(f'Error parsing configuration file "{path}": {e}') from e

    base = path.resolve().parent
    return config.model_copy(
        update={
            "data_file": str(base / config.data_file),
            "html_template_file": str(base / config.html_template_file),
            "output_html_dir": str(base / config.output_html_dir),
        }
    )


def load_addresses(path: Path) -> List[Address]:
    """Read and validate the data file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DataFileError(f'Error reading data file "{path}": {e}') from e
    try:
        addresses = _ADDRESS_LIST.validate_json(text)
    except ValidationError as e:
        raise DataFileError(f'Error parsing data file "{path}": {e}') from e

    validate_addresses(addresses)
    return addresses


def _to_json(record: BaseModel) -> str:
    return record.model_dump_json(indent=4)


def validate_addresses(addresses: Sequence[Address]) -> None:
    """Fail on the first malformed address or resident, in file order.

    Every message names the field and the address and ends with the offending
    record as JSON, so the data file can be fixed without guessing.
    """
    known_ids = {p.id for a in addresses for p in a.residents if p.id}
    seen: Set[str] = set()

    for address in addresses:
        for field in _ADDRESS_FIELDS:
            if not getattr(address, field):
                raise DataFileError(
                    f'Data File Error: Address missing "{field}"\nJSON:\n{_to_json(address)}'
                )

        where = f'under Address "{address.address}"'
        for person in address.residents:
            if not person.id:
                raise DataFileError(
                    f'Data File Error: Resident missing "id" {where}\nJSON:\n{_to_json(person)}'
                )
            if person.id in seen:
                raise DataFileError(
                    f'Data File Error: Resident "id" value "{person.id}" {where} must be unique'
                    f"\nJSON:\n{_to_json(person)}"
                )
            seen.add(person.id)

            for field in _PERSON_FIELDS:
                if not getattr(person, field):
                    raise DataFileError(
                        f'Data File Error: Resident "{person.id}" missing "{field}" {where}'
                        f"\nJSON:\n{_to_json(person)}"
                    )
            for field in _HEADER_FIELDS:
                if _CONTROL_CHARS.search(getattr(person, field)):
                    raise DataFileError(
                        f'Data File Error: Resident "{person.id}" "{field}" must not contain control characters {where}'
                        f"\nJSON:\n{_to_json(person)}"
                    )

            if person.actor_id:
                if person.actor_id == person.id:
                    raise DataFileError(
                        f'Data File Error: Resident "{person.id}" {where}: "actor_id" "{person.actor_id}" '
                        f'must be different from "id"\nJSON:\n{_to_json(person)}'
                    )
                if person.actor_id not in known_ids:
                    raise DataFileError(
                        f'Data File Error: Resident "{person.id}" {where}: "actor_id" "{person.actor_id}" '
                        f'must be an existing "id" value from a different person\nJSON:\n{_to_json(person)}'
                    )


def create_resident_index(addresses: Iterable[Address]) -> Dict[str, Resident]:
    """id -> Resident, in file order. Ids are unique once validated."""
    residents: Dict[str, Resident] = {}
    for address in addresses:
        for person in address.residents:
            residents[person.id] = Resident(person=person, address=address)
    return residents


# ---------------------------
# Solver
# ---------------------------

def _random_sequence(items: Iterable[T], rng: random.Random) -> List[T]:
    """Shuffle by tagging every item with a random key and sorting on it."""
    keyed = [(rng.random(), item) for item in items]
    keyed.sort(key=lambda pair: pair[0], reverse=True)
    return [item for _, item in keyed]


def _same_residence(a: Resident, b: Resident) -> bool:
    return a.address.address == b.address.address


def _attempt_assignments(
    residents: Dict[str, Resident],
    allow_same_residence_exchange: bool,
    rng: random.Random,
) -> Optional[List[Assignment]]:
    """One draw. Returns None as soon as some giver has nobody left to draw.

    ``residents`` is only read; receivers are taken from a private copy.
    """
    remaining = dict(residents)
    assignments: List[Assignment] = []

    for giver in _random_sequence(residents.values(), rng):
        if not remaining:
            break

        receiver: Optional[Resident] = None
        for candidate in _random_sequence(remaining.values(), rng):
            candidate_id = candidate.person.id
            if candidate_id == giver.person.id:
                continue
            if candidate_id not in remaining:
                logging.debug("Person %s is already drawn", candidate_id)
                continue
            if not allow_same_residence_exchange and _same_residence(giver, candidate):
                logging.debug("Person %s and %s have the same address", giver.person.id, candidate_id)
                continue
            receiver = candidate
            break

        if receiver is None:
            logging.debug("No pairing found for %s", giver.person.id)
            return None

        del remaining[receiver.person.id]
        actor = giver
        if giver.person.actor_id:
            actor = residents[giver.person.actor_id]
        assignments.append(Assignment(giver=giver, receiver=receiver, actor=actor))

    return assignments


def generate_assignments(
    addresses: Sequence[Address],
    allow_same_residence_exchange: bool = False,
    rng: Optional[random.Random] = None,
    max_attempts: int = MAX_ATTEMPTS,
) -> List[Assignment]:
    """
    Draw a giver -> receiver assignment for every resident of ``addresses``.

    Each attempt shuffles the givers, then lets every giver draw from a fresh
    shuffle of the residents nobody has drawn yet. A giver left with no valid
    receiver throws the whole attempt away. ``addresses`` must already be
    validated (see :func:`validate_addresses`).
    """
    residents = create_resident_index(addresses)
    if rng is None:
        rng = random.Random(time.time_ns())

    for attempt in range(1, max_attempts + 1):
        assignments = _attempt_assignments(residents, allow_same_residence_exchange, rng)
        if assignments is not None:
            logging.debug("Assigned %d residents on attempt %d", len(assignments), attempt)
            return assignments
        logging.debug("Reattempting assignment...")

    if allow_same_residence_exchange:
        raise AssignmentExhaustedError(
            f"Could not assign secret santas after {max_attempts} attempts."
        )
    raise AssignmentExhaustedError(
        f"Could not assign secret santas after {max_attempts} attempts. "
        'Try setting "allow_same_residence_exchange" to true.'
    )


# ---------------------------
# Main
# ---------------------------

def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Secret Santa by household, delivered by email.")
    parser.add_argument("config", nargs="?", default="config.json", help="Path to configuration json (default: config.json)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed (optional, for reproducibility)")
    parser.add_argument("--max-attempts", type=int, default=MAX_ATTEMPTS, help=f"Max randomized draws before giving up (default: {MAX_ATTEMPTS})")
    parser.add_argument("--dry-run", action="store_true", help="Render emails but do not send them, even if smtp is enabled")
    args = parser.parse_args(argv)

    if args.max_attempts < 1:
        parser.error("--max-attempts must be at least 1")

    try:
        # 1) Config & logging
        config = load_config(Path(args.config))
        setup_logging(config.enable_debug_messages)

        # 2) Households
        addresses = load_addresses(Path(config.data_file))
        count = sum(len(a.residents) for a in addresses)
        print(f"[INFO] Loaded {count} residents at {len(addresses)} addresses from {config.data_file}")

        # 3) Draw
        seed = args.seed if args.seed is not None else time.time_ns()
        assignments = generate_assignments(
            addresses,
            config.rules.allow_same_residence_exchange,
            rng=random.Random(seed),
            max_attempts=args.max_attempts,
        )

        # 4) Notify
        send_assignments(assignments, config, dry_run=args.dry_run)
    except SecretSantaError as e:
        sys.exit(f"[ERROR] {e}")

    print(f"[OK] {len(assignments)} secret santa assignments made.")

if __name__ == "__main__":
    main()
