from __future__ import annotations

from typing import Iterable, Optional

from backend.app.models import FamilyNode, PersonRecord


def children_of(people: Iterable[PersonRecord], parent_id: str) -> list[PersonRecord]:
    return [person for person in people if person.father_id == parent_id]


def resolve_father_id(people: Iterable[PersonRecord], father_name: Optional[str]) -> Optional[str]:
    if not father_name:
        return None
    wanted = father_name.strip().lower()
    for person in people:
        if person.name.strip().lower() == wanted:
            return person.id
    return None


def build_family_tree(people: Iterable[PersonRecord]) -> list[FamilyNode]:
    """
    Nest people under their fathers.
    Roots are people without a father_id or whose father is not in the set.
    """
    members = list(people)
    known_ids = {person.id for person in members}
    by_father: dict[str, list[PersonRecord]] = {}
    for person in members:
        if person.father_id:
            by_father.setdefault(person.father_id, []).append(person)

    def build(person: PersonRecord) -> FamilyNode:
        return FamilyNode(
            person=person,
            children=[build(child) for child in by_father.get(person.id, [])],
        )

    roots = [
        person
        for person in members
        if not person.father_id or person.father_id not in known_ids
    ]
    return [build(root) for root in roots]


def creates_cycle(
    people: Iterable[PersonRecord], person_id: str, father_id: Optional[str]
) -> bool:
    """True when making ``father_id`` the father of ``person_id`` would loop the tree."""
    if not father_id:
        return False
    fathers = {person.id: person.father_id for person in people}
    seen: set[str] = set()
    current: Optional[str] = father_id
    while current and current not in seen:
        if current == person_id:
            return True
        seen.add(current)
        current = fathers.get(current)
    return False
