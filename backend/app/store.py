from __future__ import annotations

import logging
from threading import RLock
from typing import TYPE_CHECKING, Callable, Optional
from uuid import uuid4

from backend.app.models import (
    DuplicateDetectionResult,
    DuplicateMatch,
    FamilyNode,
    PersonCreateRequest,
    PersonRecord,
    PersonUpdateRequest,
    SuggestedAction,
    utc_now,
)
from backend.app.services.dedupe import (
    DEFAULT_POLICY,
    CandidateLike,
    DuplicatePolicy,
    detect_duplicates,
    percent,
)
from backend.app.services.family_tree import (
    build_family_tree,
    children_of,
    creates_cycle,
    resolve_father_id,
)
from backend.app.services.normalization import normalize_name

if TYPE_CHECKING:
    from backend.app.auth import AuthContext
    from backend.app.persistence import SqlitePersistence

logger = logging.getLogger("family_tree.store")

PeopleListener = Callable[[list[PersonRecord]], None]


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:10]}"


class StoreConflictError(Exception):
    pass


class StoreNotFoundError(Exception):
    pass


class InvalidInputError(ValueError):
    pass


class AuthRequiredError(Exception):
    pass


class DuplicateBlockedError(StoreConflictError):
    def __init__(self, match: DuplicateMatch) -> None:
        self.match = match
        self.message = (
            f'"{match.person.name}" already exists in the family tree '
            f"({percent(match.confidence)}% match)"
        )
        super().__init__(self.message)


class DuplicateNeedsReviewError(StoreConflictError):
    def __init__(self, result: DuplicateDetectionResult) -> None:
        self.result = result
        top = result.matches[0]
        super().__init__(
            f'possible duplicate of "{top.person.name}" '
            f"({percent(top.confidence)}% match); confirm to add anyway"
        )


class InMemoryStore:
    def __init__(
        self,
        persistence: Optional["SqlitePersistence"] = None,
        policy: DuplicatePolicy = DEFAULT_POLICY,
    ) -> None:
        self._lock = RLock()
        self.persistence = persistence
        self.policy = policy
        self.people: dict[str, PersonRecord] = {}
        self._listeners: dict[int, PeopleListener] = {}
        self._next_listener_id = 0

        if self.persistence:
            for person in self.persistence.list_people():
                self.people[person.id] = person

    def list_people(self) -> list[PersonRecord]:
        with self._lock:
            return self._sorted_people()

    def get_person(self, person_id: str) -> PersonRecord:
        person = self.people.get(person_id)
        if not person:
            raise StoreNotFoundError(f"person not found: {person_id}")
        return person

    def get_children(self, person_id: str) -> list[PersonRecord]:
        with self._lock:
            self.get_person(person_id)
            return children_of(self._sorted_people(), person_id)

    def family_tree(self) -> list[FamilyNode]:
        with self._lock:
            return build_family_tree(self._sorted_people())

    def subscribe(self, listener: PeopleListener) -> Callable[[], None]:
        with self._lock:
            listener_id = self._next_listener_id
            self._next_listener_id += 1
            self._listeners[listener_id] = listener
            self._deliver(listener, self._sorted_people())

        def unsubscribe() -> None:
            with self._lock:
                self._listeners.pop(listener_id, None)

        return unsubscribe

    def preview_duplicates(self, candidate: CandidateLike) -> DuplicateDetectionResult:
        # Lock-free read: good enough for UI hints, never used to decide a write.
        return detect_duplicates(candidate, list(self.people.values()), policy=self.policy)

    def add_person_checked(
        self, candidate: PersonCreateRequest, *, actor: "AuthContext"
    ) -> PersonRecord:
        self._require_writer(actor)
        self._require_name(candidate)
        with self._lock:
            result = detect_duplicates(
                candidate, list(self.people.values()), policy=self.policy
            )
            if result.suggested_action == SuggestedAction.block:
                blocked = DuplicateBlockedError(result.matches[0])
                logger.info(
                    "person_add_blocked name=%r match_id=%s confidence=%.2f",
                    candidate.name,
                    blocked.match.person.id,
                    blocked.match.confidence,
                )
                raise blocked
            if result.suggested_action == SuggestedAction.review:
                logger.info(
                    "person_add_needs_review name=%r match_id=%s confidence=%.2f",
                    candidate.name,
                    result.matches[0].person.id,
                    result.matches[0].confidence,
                )
                raise DuplicateNeedsReviewError(result)
            return self._insert(candidate, actor=actor, overridden=False)

    def add_person_with_override(
        self, candidate: PersonCreateRequest, *, actor: "AuthContext"
    ) -> PersonRecord:
        self._require_writer(actor)
        self._require_name(candidate)
        with self._lock:
            return self._insert(candidate, actor=actor, overridden=True)

    def update_person(
        self, person_id: str, request: PersonUpdateRequest, *, actor: "AuthContext"
    ) -> PersonRecord:
        self._require_writer(actor)
        changes = request.model_dump(exclude_unset=True)
        if "name" in changes and not changes["name"]:
            raise InvalidInputError("name cannot be blank")
        with self._lock:
            person = self.get_person(person_id)
            if creates_cycle(self.people.values(), person_id, changes.get("father_id")):
                raise InvalidInputError(
                    f"{changes['father_id']} cannot be the father of {person_id}: "
                    "the family tree would loop"
                )
            updated = person.model_copy(update=changes)
            if self.persistence:
                self.persistence.upsert_person(updated)
            self.people[person_id] = updated
            logger.info(
                "person_updated person_id=%s fields=%s user_id=%s",
                person_id,
                ",".join(sorted(changes)),
                actor.user_id,
            )
            self._notify()
            return updated

    def delete_person(self, person_id: str, *, actor: "AuthContext") -> None:
        self._require_writer(actor)
        with self._lock:
            self.get_person(person_id)
            if self.persistence:
                self.persistence.delete_person(person_id)
            del self.people[person_id]
            logger.info("person_deleted person_id=%s user_id=%s", person_id, actor.user_id)
            self._notify()

    def clear_all(self, *, actor: "AuthContext") -> int:
        self._require_writer(actor)
        with self._lock:
            deleted = len(self.people)
            if self.persistence:
                self.persistence.clear_people()
            self.people.clear()
            logger.warning("people_cleared deleted=%d user_id=%s", deleted, actor.user_id)
            self._notify()
            return deleted

    def _insert(
        self, candidate: PersonCreateRequest, *, actor: "AuthContext", overridden: bool
    ) -> PersonRecord:
        father_id = candidate.father_id
        if candidate.father_name and not father_id:
            father_id = resolve_father_id(self.people.values(), candidate.father_name)
        person = PersonRecord(
            id=new_id("per"),
            name=candidate.name.strip(),
            father_name=candidate.father_name,
            father_id=father_id,
            created_at_utc=utc_now(),
        )
        if self.persistence:
            self.persistence.upsert_person(person)
        self.people[person.id] = person
        logger.info(
            "person_added person_id=%s overridden=%s user_id=%s",
            person.id,
            overridden,
            actor.user_id,
        )
        self._notify()
        return person

    def _sorted_people(self) -> list[PersonRecord]:
        return sorted(self.people.values(), key=lambda item: item.created_at_utc, reverse=True)

    def _notify(self) -> None:
        if not self._listeners:
            return
        people = self._sorted_people()
        for listener in list(self._listeners.values()):
            self._deliver(listener, people)

    @staticmethod
    def _deliver(listener: PeopleListener, people: list[PersonRecord]) -> None:
        try:
            listener(list(people))
        except Exception:
            logger.exception("people_listener_failed listener=%r", listener)

    @staticmethod
    def _require_writer(actor: "AuthContext") -> None:
        if not actor.can_write:
            raise AuthRequiredError("sign in with a non-guest account to change the family tree")

    @staticmethod
    def _require_name(candidate: CandidateLike) -> None:
        if not candidate.name or not candidate.name.strip():
            raise InvalidInputError("name cannot be blank")
        if not normalize_name(candidate.name):
            raise InvalidInputError("name must contain letters")
