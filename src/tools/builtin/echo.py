from __future__ import annotations

from ..registry import ToolDescriptor, ToolParam


def echo(message: str) -> str:
    return message


def reverse_echo(message: str) -> str:
    return message[::-1]


ECHO = ToolDescriptor(
    name="echo",
    description="Echoes your message back.",
    handler=echo,
    params=(ToolParam("message", description="the message to echo"),),
)

REVERSE_ECHO = ToolDescriptor(
    name="reverse_echo",
    description="Reverses the string you provide.",
    handler=reverse_echo,
    params=(ToolParam("message", description="the text to reverse"),),
)
