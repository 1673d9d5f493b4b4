from __future__ import annotations

import pytest

from alldun.domain.errors import NotFound, ValidationError
from alldun.services.social_service import UserDirectory


@pytest.fixture()
def users() -> UserDirectory:
    return UserDirectory()


def test_add_user_and_search(users) -> None:
    jakob = users.add_user("jakob_m", "Jakob Marrone", bio="  Progress, not perfection. ")
    users.add_user("sarah_k", "Sarah Kim")

    assert jakob.bio == "Progress, not perfection."
    assert [u.username for u in users.search("KIM")] == ["sarah_k"]
    assert [u.username for u in users.search("jak")] == ["jakob_m"]
    assert users.search("  ") == []

    with pytest.raises(ValidationError):
        users.add_user("Jakob_M", "Someone Else")
    with pytest.raises(ValidationError):
        users.add_user(" ", "Nobody")
    with pytest.raises(NotFound):
        users.get_user("missing")


def test_update_bio(users) -> None:
    user = users.add_user("mike_b", "Mike Brown", bio="Tech enthusiast.")

    assert users.update_bio(user.id, "").bio is None


def test_friendship_is_mutual(users) -> None:
    a = users.add_user("a", "A")
    b = users.add_user("b", "B")
    c = users.add_user("c", "C")
    d = users.add_user("d", "D")

    users.add_friend(a.id, b.id)
    users.add_friend(b.id, c.id)
    users.add_friend(a.id, d.id)
    users.add_friend(c.id, d.id)

    assert [u.id for u in users.friends_of(b.id)] == [a.id, c.id]
    assert [u.id for u in users.mutual_friends(a.id, c.id)] == [b.id, d.id]
    assert [u.id for u in users.suggestions(a.id)] == [c.id]

    users.remove_friend(b.id, a.id)
    assert [u.id for u in users.friends_of(a.id)] == [d.id]

    with pytest.raises(ValidationError):
        users.add_friend(a.id, a.id)


def test_leaderboard_ranks_by_completed_tasks(users) -> None:
    a = users.add_user("alex", "Alex")
    b = users.add_user("bea", "Bea")
    c = users.add_user("cy", "Cy")
    d = users.add_user("dee", "Dee")

    board = users.leaderboard({b.id: 3, c.id: 3, a.id: 1})

    assert [(e.rank, e.username, e.completed_count) for e in board] == [
        (1, "bea", 3),
        (1, "cy", 3),
        (2, "alex", 1),
        (3, "dee", 0),
    ]
    assert board[-1].user_id == d.id
