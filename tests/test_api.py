import pytest
from fastapi.testclient import TestClient

from messageboard.core import database
from messageboard.core.errors import ConnectionFailure
from messageboard.main import app
from messageboard.services.message_store import MessageStore
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from conftest import IMAGES_DIR, make_uuid

URL = "/api/messages"


def post_body(n, **overrides):
    body = {
        "uuid": make_uuid(n),
        "author": f"author-{n}",
        "message": f"message {n}",
        "likes": n,
    }
    body.update(overrides)
    return body


def create(client, n, **overrides):
    response = client.post(URL, json=post_body(n, **overrides))
    assert response.status_code == 201, response.text
    return response


def drain_cache_pass(client):
    """Consume any pending mutations so the next pass pages the table."""
    meta = client.get(URL).json()
    if meta["kind"] == "Cache":
        while not client.get(f"{URL}/get-page").json()["done"]:
            pass
    else:
        while len(client.get(f"{URL}/get-page").json()) == 3:
            pass


def test_root(client):
    assert client.get("/").status_code == 200


def test_create_and_get(client):
    response = create(client, 1)
    assert response.json() == {
        "uuid": make_uuid(1),
        "author": "author-1",
        "message": "message 1",
        "likes": 1,
        "has_image": False,
    }

    response = client.get(f"{URL}/{make_uuid(1)}")
    assert response.status_code == 200
    assert response.json() == {
        "uuid": make_uuid(1),
        "author": "author-1",
        "message": "message 1",
        "likes": 1,
        "image": None,
    }


def test_get_unknown(client):
    assert client.get(f"{URL}/{make_uuid(42)}").status_code == 404


def test_duplicate_post_conflicts(client):
    create(client, 1)
    response = client.post(URL, json=post_body(1, author="someone else"))
    assert response.status_code == 409


def test_invalid_body_is_bad_request(client):
    assert client.post(URL, json=post_body(1, author="a" * 65)).status_code == 400
    assert client.post(URL, json={"uuid": make_uuid(1)}).status_code == 400
    assert client.post(URL, json=post_body(1, uuid="not-a-uuid")).status_code == 400


def test_post_with_image(client):
    create(client, 1, imageUpdate=True, base64Image="aW1n")
    assert (IMAGES_DIR / make_uuid(1)).read_text() == "aW1n"
    assert client.get(f"{URL}/{make_uuid(1)}").json()["image"] == "aW1n"


def test_post_image_flag_without_image(client):
    response = client.post(URL, json=post_body(1, imageUpdate=True))
    assert response.status_code == 400


def test_put_updates_fields(client):
    create(client, 1)
    response = client.put(f"{URL}/{make_uuid(1)}", json={"likes": 10, "message": None})
    assert response.status_code == 204

    body = client.get(f"{URL}/{make_uuid(1)}").json()
    assert body["likes"] == 10
    assert body["message"] is None
    assert body["author"] == "author-1"


def test_put_image_add_and_remove(client):
    create(client, 1)
    client.put(f"{URL}/{make_uuid(1)}", json={"imageUpdate": True, "base64Image": "bmV3"})
    assert client.get(f"{URL}/{make_uuid(1)}").json()["image"] == "bmV3"

    client.put(f"{URL}/{make_uuid(1)}", json={"imageUpdate": True})
    assert client.get(f"{URL}/{make_uuid(1)}").json()["image"] is None
    assert not (IMAGES_DIR / make_uuid(1)).exists()


def test_put_without_fields(client):
    create(client, 1)
    response = client.put(f"{URL}/{make_uuid(1)}", json={"imageUpdate": False})
    assert response.status_code == 400
    assert response.json()["detail"] == "No fields were provided to update."


def test_put_null_author(client):
    create(client, 1)
    assert client.put(f"{URL}/{make_uuid(1)}", json={"author": None}).status_code == 400


def test_put_unknown(client):
    assert client.put(f"{URL}/{make_uuid(1)}", json={"likes": 1}).status_code == 404


def test_delete(client):
    create(client, 1, imageUpdate=True, base64Image="aW1n")
    assert client.delete(f"{URL}/{make_uuid(1)}").status_code == 204
    assert client.get(f"{URL}/{make_uuid(1)}").status_code == 404
    assert not (IMAGES_DIR / make_uuid(1)).exists()
    assert client.delete(f"{URL}/{make_uuid(1)}").status_code == 404


def test_clear(client):
    assert client.patch(URL).status_code == 404
    create(client, 1, imageUpdate=True, base64Image="aW1n")
    create(client, 2)
    assert client.patch(URL).status_code == 204
    assert client.get(f"{URL}/{make_uuid(1)}").status_code == 404
    assert list(IMAGES_DIR.iterdir()) == []
    # the mutation log was cleared too, so the next pass pages the (empty) table
    assert client.get(URL).json() == {"total_pages": 1, "kind": "Fresh"}


def test_get_page_before_pagination(client):
    response = client.get(f"{URL}/get-page")
    assert response.status_code == 403
    assert response.json()["detail"] == "Pagination not triggered yet."


def test_fresh_pagination(client):
    for n in range(5):
        create(client, n, **({"imageUpdate": True, "base64Image": "aW1n"} if n == 4 else {}))
    drain_cache_pass(client)

    meta = client.get(URL).json()
    assert meta == {"total_pages": 5 // 3 + 1, "kind": "Fresh"}

    first = client.get(f"{URL}/get-page").json()
    second = client.get(f"{URL}/get-page").json()

    assert [m["uuid"] for m in first] == [make_uuid(n) for n in range(3)]
    assert [m["uuid"] for m in second] == [make_uuid(3), make_uuid(4)]
    assert second[1]["image"] == "aW1n"
    assert second[0]["image"] is None
    # the short page ended the pass
    assert client.get(f"{URL}/get-page").status_code == 403


def test_cache_pagination(client):
    for n in range(4):
        create(client, n)
    drain_cache_pass(client)

    create(client, 7)
    client.put(f"{URL}/{make_uuid(1)}", json={"likes": 99})
    client.delete(f"{URL}/{make_uuid(2)}")
    client.put(f"{URL}/{make_uuid(7)}", json={"author": "edited"})

    meta = client.get(URL).json()
    assert meta == {"total_pages": 3 // 3 + 1, "kind": "Cache"}

    page = client.get(f"{URL}/get-page").json()
    assert page["done"] is False
    assert [p["uuid"] for p in page["posts"]] == [make_uuid(7)]
    assert page["posts"][0]["author"] == "edited"
    assert page["puts_deletes"] == [
        {
            "uuid": make_uuid(1),
            "put": {"author": "author-1", "message": "message 1", "likes": 99, "image": None},
            "delete": False,
        },
        {"uuid": make_uuid(2), "put": None, "delete": True},
    ]

    last = client.get(f"{URL}/get-page").json()
    assert last == {"posts": [], "puts_deletes": [], "done": True}
    assert client.get(f"{URL}/get-page").status_code == 403

    # nothing pending any more, so the next pass is over the table
    assert client.get(URL).json()["kind"] == "Fresh"


def test_edit_between_two_pass_starts(client):
    create(client, 1)
    assert client.get(URL).json()["kind"] == "Cache"
    client.put(f"{URL}/{make_uuid(1)}", json={"likes": 5})
    assert client.get(URL).json() == {"total_pages": 2 // 3 + 1, "kind": "Cache"}

    response = client.get(f"{URL}/get-page")

    assert response.status_code == 200
    page = response.json()
    assert [p["uuid"] for p in page["posts"]] == [make_uuid(1)]
    assert page["puts_deletes"][0]["put"]["likes"] == 5
    assert page["done"] is True


def test_restarting_a_half_drained_cache_pass(client):
    for n in range(4):
        create(client, n)
    assert client.get(URL).json() == {"total_pages": 2, "kind": "Cache"}
    first = client.get(f"{URL}/get-page").json()
    assert len(first["posts"]) == 3

    # nothing new is pending, but one entry of the earlier pass is left
    assert client.get(URL).json() == {"total_pages": 1, "kind": "Cache"}
    rest = client.get(f"{URL}/get-page").json()
    assert [p["uuid"] for p in rest["posts"]] == [make_uuid(3)]
    assert rest["done"] is True

    assert client.get(URL).json()["kind"] == "Fresh"


def test_put_image_write_failure_leaves_row_untouched(client, monkeypatch):
    create(client, 1)
    board = client.app.state.board

    def failing_save(uuid, image):
        raise OSError("disk full")

    monkeypatch.setattr(board.images, "save", failing_save)
    response = client.put(f"{URL}/{make_uuid(1)}", json={"imageUpdate": True, "base64Image": "bmV3", "likes": 8})

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to save image."
    body = client.get(f"{URL}/{make_uuid(1)}").json()
    assert body["image"] is None
    assert body["likes"] == 1
    assert board.mutations.updates_put == {}


def test_unreachable_database_answers_503(client, tmp_path):
    engine = database.build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
    client.app.state.board.store = MessageStore(
        sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    )

    response = client.get(f"{URL}/{make_uuid(1)}")

    assert response.status_code == 503
    assert response.json() == {"detail": "Database unavailable"}


def test_startup_refuses_unreachable_database(monkeypatch, tmp_path):
    engine = database.build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'db.sqlite'}")
    monkeypatch.setattr(database, "engine", engine)

    with pytest.raises(ConnectionFailure):
        with TestClient(app):
            pass
