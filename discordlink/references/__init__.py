"""
Reference objects.

A closed set of frozen pydantic models, discriminated by ``kind``, each
naming a remote Discord entity by bot id + snowflake id(s):

    BotRef      discord@<bot>
    GroupRef    discordgroup@[bot,]id
    ChannelRef  discordchannel@[bot,]id
    UserRef     discorduser@[bot,]id
    RoleRef     discordrole@[bot,]id
    MessageRef  discordmessage@[bot,]channel,message
    ReactionRef discordreaction@[bot,]channel,message,emoji

All share Reference.get_attribute(), which resolves the bot's live session
on every call.
"""

from typing import Annotated, Union

from pydantic import Field

from discordlink.references.base import Reference
from discordlink.references.bot import BotRef
from discordlink.references.channel import ChannelRef
from discordlink.references.group import GroupRef
from discordlink.references.message import MessageRef
from discordlink.references.reaction import ReactionRef
from discordlink.references.role import RoleRef
from discordlink.references.user import UserRef

AnyReference = Annotated[
    Union[BotRef, GroupRef, ChannelRef, UserRef, RoleRef, MessageRef, ReactionRef],
    Field(discriminator="kind"),
]

REFERENCE_TYPES: dict[str, type[Reference]] = {
    cls.PREFIX: cls
    for cls in (BotRef, GroupRef, ChannelRef, UserRef, RoleRef, MessageRef, ReactionRef)
}


def parse_reference(text: str) -> AnyReference | None:
    """
    Parse a prefixed identifier such as "discordgroup@mybot,1234".

    The prefix selects the kind; unprefixed or malformed input yields None.
    """
    prefix, sep, _ = text.strip().partition("@")
    if not sep:
        return None
    cls = REFERENCE_TYPES.get(prefix.lower())
    if cls is None:
        return None
    return cls.parse(text)


__all__ = [
    "AnyReference",
    "BotRef",
    "ChannelRef",
    "GroupRef",
    "MessageRef",
    "REFERENCE_TYPES",
    "ReactionRef",
    "Reference",
    "RoleRef",
    "UserRef",
    "parse_reference",
]
