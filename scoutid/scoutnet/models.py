"""Scoutnet API payload models.

Parsing is lenient the way the API needs it: unknown keys are ignored and an
empty JSON array where an object is expected (PHP's empty map) reads as absent.
"""
from __future__ import annotations
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from scoutid.core.exceptions import MalformedPayloadError
from scoutid.core.normalizers import first_last

LOCAL_EMAIL_DOMAIN = "scoutid.local"
SCOUTERNA_EMAIL_KEY = "scouterna-email"


def _object(value: Any, where: str) -> Dict[str, Any]:
    if value is None or value == []:
        return {}
    if not isinstance(value, dict):
        raise MalformedPayloadError(f"Expected an object at {where}, got {type(value).__name__}")
    return value


def _int(value: Any, where: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedPayloadError(f"Expected an integer at {where}, got {value!r}")


@dataclass
class Address:
    is_primary: bool = False
    address_line1: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    country_code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Address":
        return cls(
            is_primary=bool(data.get("is_primary", False)),
            address_line1=data.get("address_line1"),
            zip_code=data.get("zip_code"),
            city=data.get("city"),
            country_code=data.get("country_code"),
        )


@dataclass
class Group:
    name: Optional[str] = None
    group_no: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Group":
        group_no = data.get("group_no")
        return cls(
            name=data.get("name"),
            group_no=_int(group_no, "group.group_no") if group_no is not None else None,
        )


@dataclass
class GroupMembership:
    is_primary: bool = False
    group: Optional[Group] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], where: str = "membership") -> "GroupMembership":
        group = data.get("group")
        return cls(
            is_primary=bool(data.get("is_primary", False)),
            group=Group.from_dict(_object(group, f"{where}.group")) if group else None,
        )


@dataclass
class Memberships:
    group: Dict[str, GroupMembership] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Memberships":
        groups = _object(data.get("group"), "memberships.group")
        return cls(group={
            str(key): GroupMembership.from_dict(_object(value, f"memberships.group.{key}"), f"memberships.group.{key}")
            for key, value in groups.items()
        })


@dataclass
class Profile:
    """Member profile as returned by ``/get/profile``."""
    member_no: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    dob: Optional[str] = None
    sex: Optional[str] = None
    addresses: Dict[str, Address] = field(default_factory=dict)
    memberships: Optional[Memberships] = None
    contact_info: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Profile":
        """Build from the decoded JSON payload.

        Raises:
            MalformedPayloadError: If the payload lacks a member number or has
                the wrong shape
        """
        data = _object(data, "profile")
        if data.get("member_no") is None:
            raise MalformedPayloadError("Profile has no member_no")

        memberships = data.get("memberships")
        return cls(
            member_no=_int(data["member_no"], "member_no"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            email=data.get("email"),
            dob=data.get("dob"),
            sex=data.get("sex"),
            addresses={
                str(key): Address.from_dict(_object(value, f"addresses.{key}"))
                for key, value in _object(data.get("addresses"), "addresses").items()
            },
            memberships=Memberships.from_dict(_object(memberships, "memberships")) if memberships else None,
            contact_info={
                str(key): _object(value, f"contact_info.{key}")
                for key, value in _object(data.get("contact_info"), "contact_info").items()
            },
        )

    @classmethod
    def from_json(cls, raw: str) -> "Profile":
        try:
            payload = json.loads(raw)
        except ValueError as e:
            raise MalformedPayloadError(f"Profile payload is not valid JSON: {e}") from e
        return cls.from_dict(payload)

    def _contact_info_value(self, key: str) -> Optional[str]:
        for contact in self.contact_info.values():
            if contact.get("key") == key:
                return contact.get("value")
        return None

    @property
    def scouterna_email(self) -> Optional[str]:
        return self._contact_info_value(SCOUTERNA_EMAIL_KEY)

    @property
    def scoutid_local_email(self) -> str:
        """Placeholder address for systems that require an email, e.g. 3169207@scoutid.local."""
        return f"{self.member_no}@{LOCAL_EMAIL_DOMAIN}"

    @property
    def first_last(self) -> Optional[str]:
        return first_last(self.first_name, self.last_name)

    @property
    def group_memberships(self) -> Dict[str, GroupMembership]:
        if self.memberships is None:
            return {}
        return self.memberships.group

    def group_names(self) -> Dict[str, str]:
        """Map membership key to group display name, skipping blank names."""
        return {
            key: membership.group.name
            for key, membership in self.group_memberships.items()
            if membership.group is not None and membership.group.name and membership.group.name.strip()
        }

    def primary_membership(self) -> Optional[Tuple[str, GroupMembership]]:
        for key, membership in self.group_memberships.items():
            if membership.is_primary:
                return key, membership
        return None

    def primary_address(self) -> Optional[Address]:
        for address in self.addresses.values():
            if address.is_primary:
                return address
        return None


@dataclass
class Member:
    member_no: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Member":
        member_no = data.get("member_no")
        return cls(
            member_no=_int(member_no, "member.member_no") if member_no is not None else None,
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            email=data.get("email"),
        )


@dataclass
class AuthResponse:
    token: Optional[str] = None
    member: Optional[Member] = None

    @classmethod
    def from_dict(cls, data: Any) -> "AuthResponse":
        data = _object(data, "auth")
        member = data.get("member")
        return cls(
            token=data.get("token"),
            member=Member.from_dict(_object(member, "member")) if member else None,
        )


class AuthError(Enum):
    """Authentication failure kinds, with the login form message key."""
    INVALID_CREDENTIALS = "scoutnet.auth.invalid.credentials"
    SERVICE_UNAVAILABLE = "scoutnet.auth.service.unavailable"

    @property
    def message_key(self) -> str:
        return self.value


@dataclass
class AuthResult:
    auth_response: Optional[AuthResponse] = None
    error: Optional[AuthError] = None

    @classmethod
    def success(cls, auth_response: AuthResponse) -> "AuthResult":
        return cls(auth_response=auth_response)

    @classmethod
    def failure(cls, error: AuthError) -> "AuthResult":
        return cls(error=error)

    @property
    def is_success(self) -> bool:
        return self.auth_response is not None and self.error is None

    @property
    def message_key(self) -> Optional[str]:
        return self.error.message_key if self.error else None


@dataclass
class ErrorResponse:
    error: Optional[str] = None
    message: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ErrorResponse":
        if not isinstance(data, dict):
            return cls()
        code = data.get("code")
        return cls(error=data.get("error"), message=data.get("message"), code=str(code) if code is not None else None)

    def safe_error_message(self) -> str:
        """Upstream error text that is safe to log: bounded length, never empty."""
        for text in (self.message, self.error):
            if text is not None and text.strip():
                return text[:100] + "..." if len(text) > 100 else text
        return "Unknown error"
