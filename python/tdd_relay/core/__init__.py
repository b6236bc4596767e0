"""Relay engine components."""
from .session import Session, Phase, Turn
from .display import TranscriptDisplay, TERM_CLEAR
from .inbound import InboundEventHandler
from .selector import ChannelSelector, LegTable, SelectableLeg
from .input_loop import InputLoop, LoopResult, MENU
from .terminal import Terminal
from .engine import RelayEngine

__all__ = [
    "Session",
    "Phase",
    "Turn",
    "TranscriptDisplay",
    "TERM_CLEAR",
    "InboundEventHandler",
    "ChannelSelector",
    "LegTable",
    "SelectableLeg",
    "InputLoop",
    "LoopResult",
    "MENU",
    "Terminal",
    "RelayEngine",
]
