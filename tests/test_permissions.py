from relaydesk.discord.api_models import (
    Channel,
    ChannelType,
    Guild,
    Member,
    PermissionOverwrite,
    Role,
)
from relaydesk.discord.permissions import (
    ALL_PERMISSIONS,
    Permission,
    base_permissions,
    can_pin,
    can_send,
    channel_permissions,
    has_permission,
)

GUILD = "10"
ROLE = "20"
USER = "30"

VIEW_SEND = Permission.VIEW_CHANNEL | Permission.SEND_MESSAGES


def _guild(everyone: int = 0, role: int = 0, owner_id: str = "1") -> Guild:
    return Guild(
        id=GUILD,
        owner_id=owner_id,
        roles=[
            Role(id=GUILD, permissions=str(int(everyone))),
            Role(id=ROLE, permissions=str(int(role))),
        ],
    )


def _channel(*overwrites: PermissionOverwrite) -> Channel:
    return Channel(
        id="40",
        type=ChannelType.GUILD_TEXT,
        guild_id=GUILD,
        permission_overwrites=list(overwrites),
    )


def test_owner_has_everything() -> None:
    guild = _guild(owner_id=USER)
    assert base_permissions(guild, Member(), USER) == ALL_PERMISSIONS


def test_administrator_role_has_everything() -> None:
    guild = _guild(role=Permission.ADMINISTRATOR)
    member = Member(roles=[ROLE])
    channel = _channel(
        PermissionOverwrite(id=GUILD, type=0, deny=str(int(VIEW_SEND)))
    )
    assert channel_permissions(guild, member, USER, channel) == ALL_PERMISSIONS


def test_roles_are_combined() -> None:
    guild = _guild(everyone=Permission.VIEW_CHANNEL, role=Permission.SEND_MESSAGES)
    permissions = channel_permissions(guild, Member(roles=[ROLE]), USER, _channel())
    assert can_send(permissions)
    assert not can_pin(permissions)


def test_everyone_overwrite_then_role_overwrite() -> None:
    guild = _guild(everyone=VIEW_SEND)
    channel = _channel(
        PermissionOverwrite(id=GUILD, type=0, deny=str(int(Permission.SEND_MESSAGES))),
        PermissionOverwrite(
            id=ROLE, type=0, allow=str(int(Permission.SEND_MESSAGES))
        ),
    )
    assert can_send(channel_permissions(guild, Member(roles=[ROLE]), USER, channel))
    assert not can_send(channel_permissions(guild, Member(), USER, channel))


def test_member_overwrite_wins() -> None:
    guild = _guild(everyone=VIEW_SEND)
    channel = _channel(
        PermissionOverwrite(id=USER, type=1, deny=str(int(Permission.SEND_MESSAGES)))
    )
    assert not can_send(channel_permissions(guild, Member(), USER, channel))


def test_no_view_channel_means_nothing() -> None:
    guild = _guild(everyone=VIEW_SEND | Permission.MANAGE_MESSAGES)
    channel = _channel(
        PermissionOverwrite(id=GUILD, type=0, deny=str(int(Permission.VIEW_CHANNEL)))
    )
    assert channel_permissions(guild, Member(), USER, channel) == 0


def test_pin_messages_alone_allows_pinning() -> None:
    assert can_pin(int(Permission.PIN_MESSAGES))
    assert can_pin(int(Permission.MANAGE_MESSAGES))
    assert not can_pin(int(Permission.SEND_MESSAGES))


def test_has_permission() -> None:
    assert has_permission(int(Permission.MANAGE_GUILD), Permission.MANAGE_GUILD)
    assert has_permission(int(Permission.ADMINISTRATOR), Permission.MANAGE_GUILD)
    assert not has_permission(0, Permission.MANAGE_GUILD)
