"""Effective channel permissions, computed the way the Discord client does."""

from __future__ import annotations

import enum

from .api_models import Channel, Guild, Member


class Permission(enum.IntFlag):
    ADMINISTRATOR = 1 << 3
    MANAGE_GUILD = 1 << 5
    VIEW_CHANNEL = 1 << 10
    SEND_MESSAGES = 1 << 11
    MANAGE_MESSAGES = 1 << 13
    READ_MESSAGE_HISTORY = 1 << 16
    PIN_MESSAGES = 1 << 51


ALL_PERMISSIONS = (1 << 53) - 1

OVERWRITE_ROLE = 0
OVERWRITE_MEMBER = 1


def _bits(value: str | int | None) -> int:
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def base_permissions(guild: Guild, member: Member, user_id: str) -> int:
    if guild.owner_id is not None and guild.owner_id == user_id:
        return ALL_PERMISSIONS
    roles = {role.id: role for role in guild.roles}
    everyone = roles.get(guild.id)
    permissions = _bits(everyone.permissions) if everyone is not None else 0
    for role_id in member.roles:
        role = roles.get(role_id)
        if role is not None:
            permissions |= _bits(role.permissions)
    if permissions & Permission.ADMINISTRATOR:
        return ALL_PERMISSIONS
    return permissions


def channel_permissions(
    guild: Guild, member: Member, user_id: str, channel: Channel
) -> int:
    permissions = base_permissions(guild, member, user_id)
    if permissions == ALL_PERMISSIONS:
        return permissions

    overwrites = {item.id: item for item in channel.permission_overwrites}
    everyone = overwrites.get(guild.id)
    if everyone is not None:
        permissions &= ~_bits(everyone.deny)
        permissions |= _bits(everyone.allow)

    allow = 0
    deny = 0
    for role_id in member.roles:
        overwrite = overwrites.get(role_id)
        if overwrite is not None and overwrite.type == OVERWRITE_ROLE:
            allow |= _bits(overwrite.allow)
            deny |= _bits(overwrite.deny)
    permissions &= ~deny
    permissions |= allow

    own = overwrites.get(user_id)
    if own is not None and own.type == OVERWRITE_MEMBER:
        permissions &= ~_bits(own.deny)
        permissions |= _bits(own.allow)

    # Without VIEW_CHANNEL nothing else in the channel applies.
    if not permissions & Permission.VIEW_CHANNEL:
        return 0
    return permissions


def can_send(permissions: int) -> bool:
    return bool(permissions & Permission.SEND_MESSAGES)


def can_pin(permissions: int) -> bool:
    return bool(permissions & (Permission.MANAGE_MESSAGES | Permission.PIN_MESSAGES))


def has_permission(permissions: int, flag: Permission) -> bool:
    if permissions & Permission.ADMINISTRATOR:
        return True
    return bool(permissions & flag)
