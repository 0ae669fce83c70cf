from __future__ import annotations

import random
from collections import Counter
from typing import List

import pytest

import Secret_santa
from Secret_santa import MAX_ATTEMPTS, _random_sequence, create_resident_index, generate_assignments
from santa_models import Assignment, AssignmentExhaustedError
from tests.utils import address, households, person


def _pairs(assignments: List[Assignment]) -> List[tuple]:
    return [(a.giver.person.id, a.receiver.person.id, a.actor.person.id) for a in assignments]


@pytest.mark.parametrize("seed", range(25))
def test_every_resident_gives_and_receives_once(seed: int) -> None:
    addresses = households()
    assignments = generate_assignments(addresses, rng=random.Random(seed))

    assert len(assignments) == 5
    givers = Counter(a.giver.person.id for a in assignments)
    receivers = Counter(a.receiver.person.id for a in assignments)
    assert set(givers) == {"ann", "max", "bob", "cara", "dee"}
    assert set(givers.values()) == {1}
    assert set(receivers) == set(givers) and set(receivers.values()) == {1}
    for a in assignments:
        assert a.giver.person.id != a.receiver.person.id
        assert a.giver.address.address != a.receiver.address.address


@pytest.mark.parametrize("seed", range(10))
def test_proxy_actor_is_notified(seed: int) -> None:
    addresses = households()
    index = create_resident_index(addresses)
    for a in generate_assignments(addresses, rng=random.Random(seed)):
        if a.giver.person.id == "max":
            assert a.actor.person.id == "ann"
            assert a.actor == index["ann"]
        else:
            assert a.actor == a.giver


@pytest.mark.parametrize("seed", range(10))
def test_three_distinct_addresses_always_succeed(seed: int) -> None:
    addresses = [address("1 A St", person("r1")), address("2 B St", person("r2")), address("3 C St", person("r3"))]
    assignments = generate_assignments(addresses, rng=random.Random(seed))
    assert len(assignments) == 3
    assert all(a.giver.person.id != a.receiver.person.id for a in assignments)
    assert {a.receiver.person.id for a in assignments} == {"r1", "r2", "r3"}


def test_one_outsider_for_two_housemates_is_unsatisfiable() -> None:
    addresses = [address("A", person("a1"), person("a2")), address("B", person("b1"))]
    with pytest.raises(AssignmentExhaustedError, match='Try setting "allow_same_residence_exchange" to true'):
        generate_assignments(addresses, rng=random.Random(3))


def test_housemates_may_draw_each_other_when_allowed() -> None:
    addresses = [address("A", person("a1"), person("a2"))]
    with pytest.raises(AssignmentExhaustedError):
        generate_assignments(addresses, rng=random.Random(0))

    assignments = generate_assignments(addresses, allow_same_residence_exchange=True, rng=random.Random(0))
    assert sorted(_pairs(assignments)) == [("a1", "a2", "a1"), ("a2", "a1", "a2")]


def test_single_resident_exhausts_without_hint() -> None:
    with pytest.raises(AssignmentExhaustedError) as exc:
        generate_assignments([address("A", person("solo"))], allow_same_residence_exchange=True)
    assert "Could not assign secret santas" in str(exc.value)
    assert "allow_same_residence_exchange" not in str(exc.value)


def test_gives_up_after_max_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = []
    original = Secret_santa._attempt_assignments

    def counting(*args):
        calls.append(1)
        return original(*args)

    monkeypatch.setattr(Secret_santa, "_attempt_assignments", counting)
    with pytest.raises(AssignmentExhaustedError, match=f"after {MAX_ATTEMPTS} attempts"):
        generate_assignments([address("A", person("a1"), person("a2"))])
    assert len(calls) == MAX_ATTEMPTS


def test_retries_until_an_attempt_succeeds(monkeypatch: pytest.MonkeyPatch) -> None:
    outcomes = iter([None, None])
    original = Secret_santa._attempt_assignments

    def flaky(*args):
        return next(outcomes, original(*args))

    monkeypatch.setattr(Secret_santa, "_attempt_assignments", flaky)
    assert len(generate_assignments(households(), rng=random.Random(1))) == 5


def test_same_seed_same_draw() -> None:
    first = generate_assignments(households(), rng=random.Random(2024))
    second = generate_assignments(households(), rng=random.Random(2024))
    assert _pairs(first) == _pairs(second)


def test_no_residents_means_no_assignments() -> None:
    assert generate_assignments([], rng=random.Random(0)) == []


def test_random_sequence_is_a_permutation() -> None:
    items = list(range(20))
    shuffled = _random_sequence(items, random.Random(7))
    assert sorted(shuffled) == items
    assert items == list(range(20))


def test_same_street_in_another_city_counts_as_same_residence() -> None:
    addresses = [
        address("1 Main St", person("a1"), city="Springfield"),
        address("1 Main St", person("b1"), city="Shelbyville"),
    ]
    with pytest.raises(AssignmentExhaustedError, match="allow_same_residence_exchange"):
        generate_assignments(addresses, rng=random.Random(5), max_attempts=50)

    assignments = generate_assignments(addresses, allow_same_residence_exchange=True, rng=random.Random(5))
    assert sorted(_pairs(assignments)) == [("a1", "b1", "a1"), ("b1", "a1", "b1")]
