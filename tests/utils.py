"""Record builders shared by the tests."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List

from santa_models import Address, Person

TEMPLATE = (
    "<p>Hey $actor_first_name,</p>"
    "<p>$giver_public_name gifts to $receiver_public_name at $receiver_address, $receiver_city.</p>"
)


def person(pid: str, *, actor_id: str = "", **overrides: str) -> Person:
    """Build a complete ``Person``; pass ``field=""`` to blank a field."""
    fields: Dict[str, str] = {
        "id": pid,
        "actor_id": actor_id,
        "first_name": pid.title(),
        "last_name": "Tester",
        "public_name": f"Cousin {pid.title()}",
        "email": f"{pid}@example.com",
    }
    fields.update(overrides)
    return Person(**fields)


def address(street: str, *residents: Person, **overrides: str) -> Address:
    fields = {"address": street, "city": "Springfield", "state": "IL", "zipcode": "62701"}
    fields.update(overrides)
    return Address(residents=tuple(residents), **fields)


def households() -> List[Address]:
    """Five residents over three addresses; ``max`` is notified through ``ann``."""
    return [
        address("12 Holly Lane", person("ann"), person("max", actor_id="ann")),
        address("400 Pine Road", person("bob"), person("cara")),
        address("7 Frost Court", person("dee")),
    ]


def write_project(root: Path, addresses: List[Address], **config: object) -> Path:
    """Write config.json, data.json and template.html into ``root``."""
    data = [a.model_dump() for a in addresses]
    (root / "data.json").write_text(json.dumps(data, indent=2), encoding="utf-8")
    (root / "template.html").write_text(TEMPLATE, encoding="utf-8")
    payload: Dict[str, object] = {"data_file": "data.json", "html_template_file": "template.html"}
    payload.update(config)
    config_path = root / "config.json"
    config_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    return config_path
