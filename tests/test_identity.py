"""
Tests for title ID classification and derivation.
"""
import pytest

from switchdl.core.identity import (
    base_game_id,
    base_game_id_from_dlc,
    base_game_id_from_update,
    is_base_game_id,
    is_dlc_id,
    is_update_id,
    normalize_title_id,
    normalize_title_key,
    update_id_from_base_game,
)
from switchdl.exceptions import InvalidArgumentError

from conftest import DLC1_ID, GAME_ID, OTHER_GAME_ID, UPDATE_ID


def test_classifies_each_role():
    assert is_base_game_id(GAME_ID)
    assert not is_update_id(GAME_ID)
    assert not is_dlc_id(GAME_ID)

    assert is_update_id(UPDATE_ID)
    assert not is_base_game_id(UPDATE_ID)
    assert not is_dlc_id(UPDATE_ID)

    assert is_dlc_id(DLC1_ID)
    assert not is_base_game_id(DLC1_ID)
    assert not is_update_id(DLC1_ID)


def test_classification_is_case_insensitive():
    assert is_base_game_id(GAME_ID.lower())
    assert is_dlc_id("0100abcd00001001")


@pytest.mark.parametrize(
    "value", [None, "", "0100ABCD0000000", "0100ABCD000000000", "0100ABCD0000000Z"]
)
def test_malformed_ids_fail_closed(value):
    assert not is_base_game_id(value)
    assert not is_update_id(value)
    assert not is_dlc_id(value)
    assert normalize_title_id(value) is None


@pytest.mark.parametrize("base", [GAME_ID, OTHER_GAME_ID, "01007EF00011E000"])
def test_update_id_round_trip(base):
    update_id = update_id_from_base_game(base)
    assert is_update_id(update_id)
    assert base_game_id_from_update(update_id) == base


def test_update_id_from_base_game():
    assert update_id_from_base_game(GAME_ID) == UPDATE_ID


def test_base_game_id_from_dlc():
    assert base_game_id_from_dlc(DLC1_ID) == GAME_ID
    assert base_game_id_from_dlc("0100000000011001") == OTHER_GAME_ID


def test_derivations_reject_the_wrong_id_type():
    with pytest.raises(InvalidArgumentError):
        base_game_id_from_update(GAME_ID)
    with pytest.raises(InvalidArgumentError):
        base_game_id_from_dlc(UPDATE_ID)
    with pytest.raises(ValueError):
        update_id_from_base_game(DLC1_ID)


def test_base_game_id_maps_every_role():
    assert base_game_id(GAME_ID) == GAME_ID
    assert base_game_id(UPDATE_ID) == GAME_ID
    assert base_game_id(DLC1_ID) == GAME_ID
    assert base_game_id("nonsense") is None


def test_normalize_title_key():
    assert normalize_title_key("abcdef0123456789abcdef0123456789") == (
        "ABCDEF0123456789ABCDEF0123456789"
    )
    assert normalize_title_key("short") is None
    assert normalize_title_key(None) is None
