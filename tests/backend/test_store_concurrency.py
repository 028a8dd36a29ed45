from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

from backend.app.auth import AuthContext
from backend.app.models import PersonCreateRequest, UserRole
from backend.app.store import DuplicateBlockedError, InMemoryStore


def test_concurrent_checked_adds_insert_once() -> None:
    store = InMemoryStore()
    actor = AuthContext(user_id="user-1", role=UserRole.user)
    outcomes: list[str] = []
    read_errors: list[Exception] = []

    def writer(_: int) -> None:
        try:
            store.add_person_checked(PersonCreateRequest(name="Sara Karimi"), actor=actor)
            outcomes.append("inserted")
        except DuplicateBlockedError:
            outcomes.append("blocked")

    def reader() -> None:
        for _ in range(200):
            try:
                store.list_people()
                store.family_tree()
            except Exception as exc:  # pragma: no cover - regression trap
                read_errors.append(exc)

    with ThreadPoolExecutor(max_workers=12) as executor:
        futures = [executor.submit(writer, i) for i in range(50)]
        futures.extend(executor.submit(reader) for _ in range(4))
        for future in futures:
            future.result()

    assert not read_errors
    assert outcomes.count("inserted") == 1
    assert outcomes.count("blocked") == 49
    assert len(store.list_people()) == 1
