"""Unit tests for the base record mapper against an in-memory database."""

from __future__ import annotations

import calendar
from datetime import datetime
import json

import pytest
from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.orm import Session

from apikit.db.models.user import User
from apikit.mappers.base import RecordMapper
from apikit.mappers.base import split_field_list
from apikit.mappers.base import split_list_field
from apikit.mappers.base import to_unix_time
from apikit.mappers.policy import FieldPolicy
from apikit.mappers.users import UsersMapper
from apikit.mappers.validation import Required

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5)
HASHED_PASSWORD = "$2b$12$" + "x" * 53


class BareUsersMapper(UsersMapper):
    policy = FieldPolicy(visible={"email": True})


def _new_user(session: Session, **values) -> UsersMapper:
    user = UsersMapper(session, clock=lambda: FIXED_NOW)
    user.copy_from({"email": "grace@example.com", "password": HASHED_PASSWORD, **values})
    return user


def _count_users(session: Session) -> int:
    return session.scalar(select(func.count()).select_from(User))


def test_mapper_requires_a_model(session: Session) -> None:
    class Modelless(RecordMapper):
        pass

    with pytest.raises(TypeError):
        Modelless(session)


def test_new_mapper_is_dry_with_every_field_empty(session: Session) -> None:
    user = UsersMapper(session)

    assert user.dry()
    assert set(user.cast()) == set(user.fields())
    assert all(value is None for value in user.cast().values())


def test_cast_fields_without_filter_returns_every_raw_field(session: Session) -> None:
    user = _new_user(session)

    assert set(user.cast_fields()) == set(user.fields())
    assert user.cast_fields()["password"] == HASHED_PASSWORD


def test_cast_fields_filters_case_insensitively_and_ignores_unknown_names(session: Session) -> None:
    user = _new_user(session, firstname="Grace")

    assert user.cast_fields("EMAIL, firstname  nope") == {"email": "grace@example.com", "firstname": "Grace"}
    assert user.cast_fields(["Email"]) == {"email": "grace@example.com"}


def test_cast_fields_uses_supplied_data(session: Session) -> None:
    user = _new_user(session)

    assert user.cast_fields("a", data={"a": 1, "b": 2}) == {"a": 1}


def test_split_field_list_normalizes_strings_and_iterables() -> None:
    assert split_field_list(" Email,,firstname\tLASTNAME ") == ["email", "firstname", "lastname"]
    assert split_field_list(("Id", " ")) == ["id"]
    assert split_field_list(None) == []


@pytest.mark.parametrize(
    ("stored", "expected"),
    [
        ("user profile", ["user", "profile"]),
        ("read, write,,admin", ["read", "write", "admin"]),
        ('["read", " write ", ""]', ["read", "write"]),
        ('{"read": true}', []),
        ("", []),
        (None, []),
    ],
)
def test_split_list_field_reads_strings_and_json_arrays(stored, expected) -> None:
    assert split_list_field(stored) == expected


def test_export_array_renames_and_hides_fields(user: UsersMapper) -> None:
    exported = user.export_array()

    assert exported["id"] == user["uuid"]
    assert exported["object"] == "user"
    assert exported["email"] == "ada@example.com"
    assert "password" not in exported
    assert "groups" not in exported
    assert "uuid" not in exported


def test_export_array_never_leaks_fields_without_visibility(user: UsersMapper) -> None:
    visible_names = {user.policy.export_name(name) for name in user.fields()} - {None}

    assert set(user.export_array()) <= visible_names | {"id", "object"}


@pytest.mark.parametrize("fields", [None, "", "email", "nothing_known", ["lastname", "status"]])
def test_export_array_always_has_id_and_object(user: UsersMapper, fields) -> None:
    exported = user.export_array(fields)

    assert "id" in exported
    assert exported["object"] == "user"


def test_export_array_field_filter_skips_id_and_object(user: UsersMapper) -> None:
    assert set(user.export_array("email")) == {"id", "email", "object"}


def test_export_array_adds_raw_id_when_no_field_exports_as_id(session: Session) -> None:
    mapper = BareUsersMapper(session)

    exported = mapper.export_array(data={"id": 7, "email": "a@b.io", "password": "secret"})

    assert exported == {"email": "a@b.io", "id": 7, "object": "user"}


def test_export_array_converts_timestamps_to_unix_time(session: Session) -> None:
    mapper = UsersMapper(session)

    exported = mapper.export_array(
        data={
            "uuid": "6f1c2b8e-1d2a-4c3b-9a8b-0123456789ab",
            "created": FIXED_NOW,
            "updated": "1960-01-01 00:00:00",
            "firstname": "2026-01-02 03:04:05",
            "lastname": "2026-01-02",
        }
    )

    assert exported["created"] == calendar.timegm(FIXED_NOW.timetuple())
    assert exported["updated"] == 0
    assert exported["firstname"] == calendar.timegm(FIXED_NOW.timetuple())
    assert exported["lastname"] == "2026-01-02"


def test_to_unix_time_edge_cases() -> None:
    assert to_unix_time(None) is None
    assert to_unix_time("garbage") == 0
    assert to_unix_time("1970-01-01 00:01:40") == 100
    assert to_unix_time(-5) == 0


def test_export_json_raw_and_public_modes(user: UsersMapper) -> None:
    raw = json.loads(user.export_json(raw=True))
    public = json.loads(user.export_json())

    assert raw["password"] == user["password"]
    assert raw["created"] == user["created"].strftime("%Y-%m-%d %H:%M:%S")
    assert "password" not in public
    assert isinstance(public["created"], int)
    assert json.loads(user.export_json(raw=True, fields="email")) == {"email": "ada@example.com"}


def test_export_json_is_pretty_printed(user: UsersMapper) -> None:
    assert "\n    " in user.export_json()


def test_set_uuid_assigns_canonical_uuid(session: Session) -> None:
    user = _new_user(session)

    value = user.set_uuid()

    assert value is not None and len(value) == 36
    assert user["uuid"] == value


def test_set_uuid_is_idempotent_without_storage_lookup(session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    user = _new_user(session)
    first = user.set_uuid()

    calls: list[object] = []
    monkeypatch.setattr(UsersMapper, "load", lambda self, *a, **kw: calls.append(kw) or False)

    assert user.set_uuid() == first
    assert user.set_uuid() == first
    assert calls == []


def test_set_uuid_regenerates_on_collision(session: Session, user: UsersMapper) -> None:
    fresh = "0b7c6a4e-5f3d-4e2c-8b1a-abcdefabcdef"
    candidates = iter([user["uuid"], fresh])
    other = UsersMapper(session, uuid_factory=lambda: next(candidates))

    assert other.set_uuid() == fresh


def test_set_uuid_replaces_short_values(session: Session) -> None:
    user = _new_user(session, uuid="abc")

    assert len(user.set_uuid()) == 36


def test_set_uuid_returns_none_for_unknown_field(session: Session) -> None:
    assert _new_user(session).set_uuid("serial") is None


def test_validate_inspect_mode_reports_violations_without_writing_back(session: Session) -> None:
    user = _new_user(session, email="  NOT-AN-EMAIL ")
    user.set_uuid()

    result = user.validate(run=False)

    assert result == {"email": "email"}
    assert user.valid is False
    assert user["email"] == "  NOT-AN-EMAIL "


def test_validate_run_mode_writes_back_filtered_values(session: Session) -> None:
    user = _new_user(session, email=" Grace@Example.COM ", firstname="  ")
    user.set_uuid()

    assert user.validate() is True
    assert user.valid is True
    assert user["email"] == "grace@example.com"
    assert user["firstname"] is None


def test_validate_run_mode_returns_false_when_invalid(session: Session) -> None:
    user = _new_user(session, email=" Grace@Example.COM ")

    assert user.validate() is False
    assert user.valid is False
    assert user.validation_errors == {"uuid": "required"}
    assert user["email"] == " Grace@Example.COM "


def test_validate_reports_non_string_values_as_type_errors(session: Session) -> None:
    user = _new_user(session, firstname=["Grace"], lastname="Hopper", status=1)
    user.set_uuid()

    assert user.validate(run=False) == {"firstname": "type", "status": "type"}


def test_list_columns_accept_json_arrays(session: Session) -> None:
    user = _new_user(session, scopes='["user", "profile"]', groups="staff,admins")

    assert user.scope_list() == ["user", "profile"]
    assert user.group_list() == ["staff", "admins"]


def test_inspect_success_implies_run_success_without_changes(user: UsersMapper) -> None:
    before = user.cast()

    assert user.validate(run=False) is True
    assert user.validate(run=True) is True
    assert user.cast() == before


def test_validate_accepts_per_call_rule_overrides(session: Session) -> None:
    user = _new_user(session)
    defaults = UsersMapper.validation_rules

    result = user.validate(run=False, rules=(("firstname", Required()),))

    assert result == {"firstname": "required"}
    assert UsersMapper.validation_rules is defaults


def test_validate_checks_supplied_data_instead_of_record(session: Session) -> None:
    user = _new_user(session)

    assert user.validate(run=False, data={"email": "x"}, rules=(("email", Required()),)) is True


def test_filter_runs_only_filters_and_writes_back(session: Session) -> None:
    user = _new_user(session, email=" MIXED@Case.io ")

    filtered = user.filter()

    assert filtered["email"] == "mixed@case.io"
    assert user["email"] == "mixed@case.io"
    assert user.valid is False


def test_filter_with_explicit_data_and_rules(session: Session) -> None:
    user = _new_user(session)

    filtered = user.filter({"lastname": "  Hopper  ", "unknown": 1}, rules=())

    assert filtered == {"lastname": "  Hopper  ", "unknown": 1}
    assert user["lastname"] == "  Hopper  "


def test_validate_save_persists_with_identity_and_creation_time(session: Session) -> None:
    user = _new_user(session)

    assert user.validate_save() is True

    assert not user.dry()
    assert isinstance(user["id"], int)
    assert len(user["uuid"]) == 36
    assert user["created"] == FIXED_NOW
    assert user["status"] == "registered"
    assert _count_users(session) == 1


def test_validate_save_does_not_persist_invalid_records(session: Session) -> None:
    user = _new_user(session, email="broken")

    assert user.validate_save() is False
    assert user.validation_errors == {"email": "email"}
    assert _count_users(session) == 0


def test_validate_save_returns_false_on_storage_constraint(session: Session, user: UsersMapper) -> None:
    duplicate = _new_user(session, email=user["email"])

    assert duplicate.validate_save() is False
    assert _count_users(session) == 1


def test_load_missing_row_resets_mapper(session: Session, user: UsersMapper) -> None:
    mapper = UsersMapper(session)
    assert mapper.load(email=user["email"]) is True

    assert mapper.load(email="nobody@example.com") is False
    assert mapper.dry()
    assert mapper["email"] is None


def test_save_update_refreshes_updated_timestamp(session: Session, user: UsersMapper) -> None:
    mapper = UsersMapper(session, clock=lambda: FIXED_NOW)
    mapper.load(uuid=user["uuid"])
    mapper["lastname"] = "Byron"

    assert mapper.save() is True

    reloaded = UsersMapper(session)
    reloaded.load(uuid=user["uuid"])
    assert reloaded["lastname"] == "Byron"
    assert reloaded["updated"] == FIXED_NOW


def test_clone_copies_state_independently(user: UsersMapper) -> None:
    twin = user.clone()
    twin["firstname"] = "Augusta"

    assert twin["uuid"] == user["uuid"]
    assert user["firstname"] == "Ada"
    assert not twin.dry()


def test_unknown_fields_are_rejected_on_assignment(session: Session) -> None:
    user = UsersMapper(session)

    with pytest.raises(KeyError):
        user["nickname"] = "ace"
    assert "nickname" not in user
