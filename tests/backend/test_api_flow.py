from __future__ import annotations


def test_add_and_list_people(client) -> None:
    created = client.post("/people", json={"name": "  Sara   Karimi "})
    assert created.status_code == 200
    body = created.json()
    assert body["person_id"].startswith("per_")
    assert body["overridden"] is False

    listed = client.get("/people")
    assert listed.status_code == 200
    assert [item["name"] for item in listed.json()] == ["Sara Karimi"]

    fetched = client.get(f"/people/{body['person_id']}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Sara Karimi"


def test_blank_name_is_rejected(client) -> None:
    response = client.post("/people", json={"name": "   "})
    assert response.status_code == 422
    assert client.get("/people").json() == []


def test_exact_duplicate_is_blocked(client) -> None:
    first = client.post("/people", json={"name": "John Smith"})
    assert first.status_code == 200

    second = client.post("/people", json={"name": "john smith"})
    assert second.status_code == 409
    detail = second.json()["detail"]
    assert detail["code"] == "duplicate_blocked"
    assert detail["match_id"] == first.json()["person_id"]
    assert detail["match_name"] == "John Smith"
    assert detail["confidence_percent"] == 100
    assert len(client.get("/people").json()) == 1


def test_review_then_override(client) -> None:
    assert client.post("/people", json={"name": "William Johnson"}).status_code == 200

    review = client.post("/people", json={"name": "Bill Johnson"})
    assert review.status_code == 409
    detail = review.json()["detail"]
    assert detail["code"] == "duplicate_needs_review"
    assert detail["result"]["suggested_action"] == "review"
    assert detail["result"]["matches"][0]["person"]["name"] == "William Johnson"

    override = client.post("/people/override", json={"name": "Bill Johnson"})
    assert override.status_code == 200
    assert override.json()["overridden"] is True
    assert len(client.get("/people").json()) == 2


def test_duplicate_check_does_not_write(client) -> None:
    client.post("/people", json={"name": "John Smith"})

    check = client.post("/people/duplicates/check", json={"name": "John Smith"})
    assert check.status_code == 200
    body = check.json()
    assert body["is_duplicate"] is True
    assert body["suggested_action"] == "block"
    assert len(body["matches"]) == 1
    assert body["descriptions"][0].startswith("100% match - ")

    clean = client.post("/people/duplicates/check", json={"name": "Omar Haddad"})
    assert clean.json() == {
        "is_duplicate": False,
        "matches": [],
        "suggested_action": "proceed",
        "descriptions": [],
    }
    assert len(client.get("/people").json()) == 1


def test_same_name_different_fathers_can_coexist(client) -> None:
    first = client.post(
        "/people", json={"name": "Mohammad Amiri", "father_name": "Hassan Amiri"}
    )
    assert first.status_code == 200
    second = client.post(
        "/people", json={"name": "Mohammad Amiri", "father_name": "Karim Nazari"}
    )
    assert second.status_code == 200


def test_tree_and_children(client) -> None:
    father = client.post("/people", json={"name": "Ali Amiri"}).json()
    child = client.post(
        "/people", json={"name": "Reza Amiri", "father_name": "Ali Amiri"}
    ).json()
    assert child["father_id"] == father["person_id"]

    children = client.get(f"/people/{father['person_id']}/children")
    assert children.status_code == 200
    assert [item["id"] for item in children.json()] == [child["person_id"]]

    tree = client.get("/tree")
    assert tree.status_code == 200
    roots = tree.json()
    assert [node["person"]["id"] for node in roots] == [father["person_id"]]
    assert roots[0]["children"][0]["person"]["name"] == "Reza Amiri"

    assert client.get("/people/per_missing/children").status_code == 404


def test_update_delete_and_clear(client) -> None:
    person_id = client.post("/people", json={"name": "Sara Karimi"}).json()["person_id"]

    patched = client.patch(f"/people/{person_id}", json={"father_name": "Hassan Karimi"})
    assert patched.status_code == 200
    assert patched.json()["father_name"] == "Hassan Karimi"
    assert patched.json()["name"] == "Sara Karimi"

    assert client.patch("/people/per_missing", json={"name": "Nobody"}).status_code == 404

    deleted = client.delete(f"/people/{person_id}")
    assert deleted.status_code == 204
    assert client.get(f"/people/{person_id}").status_code == 404

    client.post("/people", json={"name": "Ali Amiri"})
    client.post("/people", json={"name": "Omar Haddad"})
    cleared = client.delete("/people")
    assert cleared.status_code == 200
    assert cleared.json() == {"deleted": 2}
    assert client.get("/people").json() == []


def test_names_without_letters_are_rejected(client) -> None:
    for raw in ("Jr.", "???"):
        response = client.post("/people", json={"name": raw})
        assert response.status_code == 422
        check = client.post("/people/duplicates/check", json={"name": raw})
        assert check.status_code == 422

    person_id = client.post("/people", json={"name": "Sara Karimi"}).json()["person_id"]
    patched = client.patch(f"/people/{person_id}", json={"name": "..."})
    assert patched.status_code == 422
    assert client.get(f"/people/{person_id}").json()["name"] == "Sara Karimi"


def test_self_parenting_update_is_rejected(client) -> None:
    person_id = client.post("/people", json={"name": "Sara Karimi"}).json()["person_id"]

    response = client.patch(f"/people/{person_id}", json={"father_id": person_id})
    assert response.status_code == 400

    roots = client.get("/tree").json()
    assert [node["person"]["id"] for node in roots] == [person_id]
