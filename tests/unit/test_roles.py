"""Unit tests for role parsing and flattening."""
import json

import pytest

from scoutid.core.exceptions import MalformedPayloadError
from scoutid.core.roles import RoleType, Roles, flatten_roles


def test_flatten_single_role():
    roles = Roles.from_dict({"organisation": {"692": {"68": "board_member"}}})
    assert flatten_roles(roles) == [
        "*:*:board_member",
        "organisation:*:*",
        "organisation:*:board_member",
        "organisation:692:*",
        "organisation:692:board_member",
    ]


def test_flatten_deduplicates_across_instances():
    roles = Roles.from_dict({
        "group": {
            "764": {"1": "leader"},
            "765": {"2": "leader"},
        },
    })
    flattened = flatten_roles(roles)
    assert flattened.count("*:*:leader") == 1
    assert flattened.count("group:*:leader") == 1
    assert "group:764:leader" in flattened
    assert "group:765:leader" in flattened
    assert flattened == sorted(flattened)


def test_flatten_none_is_empty():
    assert flatten_roles(None) == []


def test_instance_without_roles_emits_only_type_wildcard():
    roles = Roles.from_dict({"troop": {"123": []}})
    assert flatten_roles(roles) == ["troop:*:*"]


def test_empty_type_map_emits_nothing():
    roles = Roles.from_dict({"troop": [], "group": {}})
    assert flatten_roles(roles) == []


def test_empty_array_payload_means_no_roles():
    assert Roles.from_json("[]").by_type == {}


def test_unknown_role_type_is_ignored():
    roles = Roles.from_dict({"galaxy": {"1": {"2": "emperor"}}, "group": {"764": {"1": "leader"}}})
    assert list(roles.by_type) == [RoleType.GROUP]


def test_iter_instances_follows_type_order():
    roles = Roles.from_dict({
        "patrol": {"9": {"1": "member"}},
        "organisation": {"692": {"68": "board_member"}},
        "group": {"764": {"1": "leader"}},
    })
    assert list(roles.iter_instances()) == [
        (RoleType.ORGANISATION, "692"),
        (RoleType.GROUP, "764"),
        (RoleType.PATROL, "9"),
    ]


@pytest.mark.parametrize(
    "raw",
    [
        "{not json",
        json.dumps({"group": "leader"}),
        json.dumps({"group": {"764": "leader"}}),
        json.dumps({"group": [1, 2]}),
    ],
)
def test_malformed_payload_raises(raw):
    with pytest.raises(MalformedPayloadError):
        Roles.from_json(raw)
