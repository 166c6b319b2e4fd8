"""Unit tests for the profile fingerprint."""
import hashlib

from scoutid.core.fingerprint import profile_fingerprint, strip_volatile_fields, tracked_group_attributes

PROFILE = '{"member_no":3169207,"first_name":"Anna","last_login":"2026-10-19 08:00:00"}'


def test_fingerprint_is_sha256_hex():
    digest = profile_fingerprint("1.4.0", PROFILE, None, None)
    assert len(digest) == 64
    assert digest == digest.lower()


def test_fingerprint_matches_documented_input_order():
    expected = hashlib.sha256()
    for part in [b"1.4.0", b'{"member_no":3169207,"first_name":"Anna"}', b'{"group":{}}', b"3", b"764:domain:a.se"]:
        expected.update(part + b"\x00")
    digest = profile_fingerprint("1.4.0", PROFILE, '{"group":{}}', b"abc", [("764", "domain", "a.se")])
    assert digest == expected.hexdigest()


def test_last_login_does_not_affect_fingerprint():
    other_login = PROFILE.replace("08:00:00", "09:30:00")
    assert profile_fingerprint("1", PROFILE, None, None) == profile_fingerprint("1", other_login, None, None)


def test_strip_volatile_fields():
    assert strip_volatile_fields('{"a":1, "last_login":"x","b":2}') == '{"a":1,"b":2}'


def test_version_bump_changes_fingerprint():
    assert profile_fingerprint("1", PROFILE, None, None) != profile_fingerprint("2", PROFILE, None, None)


def test_image_length_only():
    assert profile_fingerprint("1", PROFILE, None, b"aaaa") == profile_fingerprint("1", PROFILE, None, b"bbbb")
    assert profile_fingerprint("1", PROFILE, None, b"aaaa") != profile_fingerprint("1", PROFILE, None, b"aaaaa")


def test_missing_roles_differs_from_present_roles():
    assert profile_fingerprint("1", PROFILE, None, None) != profile_fingerprint("1", PROFILE, "{}", None)


def test_tracked_attributes_are_sorted_and_default_to_empty(store):
    user = store.create_user("scoutnet|1")
    parent = store.create_group("scoutnet")
    b = store.create_group("b-group", parent)
    a = store.create_group("a-group", parent)
    store.set_group_attribute(b, "domain", "b.se")
    store.join_group(user, b)
    store.join_group(user, a)

    triples = tracked_group_attributes(store, user, ["domain"])
    assert triples == [("a-group", "domain", ""), ("b-group", "domain", "b.se")]


def test_tracked_attribute_change_changes_fingerprint(store):
    user = store.create_user("scoutnet|1")
    group = store.create_group("764")
    store.join_group(user, group)

    before = profile_fingerprint("1", PROFILE, None, None, tracked_group_attributes(store, user, ["domain"]))
    store.set_group_attribute(group, "domain", "kar.se")
    after = profile_fingerprint("1", PROFILE, None, None, tracked_group_attributes(store, user, ["domain"]))
    assert before != after


def test_profile_change_outside_last_login_changes_fingerprint():
    renamed = PROFILE.replace('"Anna"', '"Anne"')
    assert profile_fingerprint("1", PROFILE, None, None) != profile_fingerprint("1", renamed, None, None)

    renumbered = PROFILE.replace("3169207", "3169208")
    assert profile_fingerprint("1", PROFILE, None, None) != profile_fingerprint("1", renumbered, None, None)


def test_roles_change_changes_fingerprint():
    leader = '{"group":{"764":{"1":"leader"}}}'
    treasurer = '{"group":{"764":{"1":"treasurer"}}}'
    assert profile_fingerprint("1", PROFILE, leader, None) != profile_fingerprint("1", PROFILE, treasurer, None)


def test_values_cannot_shift_across_components():
    short_image = profile_fingerprint("1", PROFILE, None, b"abc", [("764", "domain", "")])
    long_image = profile_fingerprint("1", PROFILE, None, b"a" * 37, [("64", "domain", "")])
    assert short_image != long_image

    assert profile_fingerprint("1", PROFILE, None, None) != profile_fingerprint("", "1" + PROFILE, None, None)
