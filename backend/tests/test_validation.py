import pytest
from league_engine.exceptions import ValidationError
from league_engine.services.validation import (
    validate_result_submission,
    validate_set_scores,
)


def test_accepts_valid_sets() -> None:
    assert validate_set_scores([{"player1": 6, "player2": 3}]) == [
        {"player1": 6, "player2": 3}
    ]
    normalized = validate_set_scores(
        [{"player1": "6", "player2": 4}, {"player1": 3, "player2": 6}]
    )
    assert normalized[0] == {"player1": 6, "player2": 4}


@pytest.mark.parametrize(
    "sets, msg",
    [
        ([], "At least one set"),
        ([{"player1": 6, "player2": 6}], "cannot be a tie"),
        ([{"player1": -1, "player2": 6}], ">= 0"),
        ([{"player1": "x", "player2": 0}], "integers"),
        ([{"player1": True, "player2": 0}], "not booleans"),
        ([{"player1": 6}], "include both player1 and player2"),
        ("not a list", "At least one set"),
        ([42], "must be an object"),
        ([{"player1": 6, "player2": 0}] * 4, "Too many sets"),
    ],
    ids=[
        "empty",
        "tie",
        "negative",
        "non-integer",
        "boolean",
        "missing-key",
        "not-a-list",
        "non-dict-entry",
        "too-many",
    ],
)
def test_rejects_invalid_sets(sets, msg) -> None:
    with pytest.raises(ValidationError) as exc:
        validate_set_scores(sets)  # type: ignore[arg-type]
    assert msg.lower() in str(exc.value).lower()


def _submit(**overrides):
    payload = {
        "player1_id": "a",
        "player2_id": "b",
        "winner_id": "a",
        "sets": [{"player1": 6, "player2": 3}, {"player1": 6, "player2": 2}],
        "walkover": False,
    }
    payload.update(overrides)
    return validate_result_submission(**payload)


def test_result_submission_accepts_straight_sets() -> None:
    assert len(_submit()) == 2


def test_result_submission_accepts_three_set_win_for_player2() -> None:
    sets = [
        {"player1": 6, "player2": 3},
        {"player1": 4, "player2": 6},
        {"player1": 8, "player2": 10},
    ]
    assert len(_submit(winner_id="b", sets=sets)) == 3


def test_walkover_drops_sets() -> None:
    assert _submit(walkover=True, sets=[]) == []


@pytest.mark.parametrize(
    "overrides, msg",
    [
        ({"winner_id": "z"}, "did not play"),
        ({"winner_id": "b"}, "does not match"),
        ({"sets": [{"player1": 6, "player2": 3}]}, "2-0 or 2-1"),
        ({"walkover": True}, "cannot include set scores"),
        ({"player2_id": None}, "bye"),
    ],
    ids=["outsider", "wrong-winner", "one-set", "walkover-with-sets", "bye"],
)
def test_result_submission_rejects(overrides, msg) -> None:
    with pytest.raises(ValidationError) as exc:
        _submit(**overrides)
    assert msg.lower() in str(exc.value).lower()
