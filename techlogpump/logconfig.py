"""Structures of the technological log configuration files (logcfg.xml)."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field


@dataclass
class Eq:
    property: str = ""
    value: str = ""


@dataclass
class Ge:
    property: str = ""
    value: str = ""


@dataclass
class Property:
    name: str = ""


@dataclass
class Event:
    eq: Eq | None = None
    ge: Ge | None = None


@dataclass
class Log:
    history: int = 0
    location: str = ""
    events: list[Event] = field(default_factory=list)
    properties: list[Property] = field(default_factory=list)


@dataclass
class OneCLogEq:
    property: str = ""
    value: str = ""


@dataclass
class OneCLogEvent:
    eq: OneCLogEq | None = None


@dataclass
class OneCLogRec:
    location: str = ""
    events: list[OneCLogEvent] = field(default_factory=list)


@dataclass
class OneCLogCfg:
    logs: list[OneCLogRec] = field(default_factory=list)


@dataclass
class SimpleLog:
    path: str = ""
    event: str = ""


@dataclass
class SimpleLogCfg:
    logs: list[SimpleLog] = field(default_factory=list)


def _root(text: str | bytes, expected: str | None = None) -> ET.Element:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ValueError(f"invalid XML: {exc}") from exc
    if expected is not None and root.tag != expected:
        raise ValueError(f"expected element type <{expected}> but have <{root.tag}>")
    return root


def _condition(event: ET.Element, tag: str, cls):
    found = event.findall(tag)
    if not found:
        return None
    last = found[-1]
    return cls(property=last.get("property", ""), value=last.get("value", ""))


def parse_log(text: str | bytes) -> Log:
    """Parse a single ``<log>`` element with its events and properties."""
    root = _root(text)
    raw_history = root.get("history", "").strip()
    try:
        history = int(raw_history) if raw_history else 0
    except ValueError as exc:
        raise ValueError(f"invalid integer in attribute 'history': {raw_history!r}") from exc
    return Log(
        history=history,
        location=root.get("location", ""),
        events=[
            Event(eq=_condition(ev, "eq", Eq), ge=_condition(ev, "ge", Ge))
            for ev in root.findall("event")
        ],
        properties=[Property(name=p.get("name", "")) for p in root.findall("property")],
    )


def parse_onec_log_cfg(text: str | bytes) -> OneCLogCfg:
    """Parse a platform logcfg.xml document rooted at ``<config>``."""
    root = _root(text, "config")
    return OneCLogCfg(
        logs=[
            OneCLogRec(
                location=log.get("location", ""),
                events=[
                    OneCLogEvent(eq=_condition(ev, "eq", OneCLogEq))
                    for ev in log.findall("event")
                ],
            )
            for log in root.findall("log")
        ]
    )


def parse_simple_log_cfg(text: str | bytes) -> SimpleLogCfg:
    """Parse a simplified ``<logs>`` document of path/event pairs."""
    root = _root(text, "logs")
    return SimpleLogCfg(
        logs=[
            SimpleLog(path=log.get("path", ""), event=log.get("event", ""))
            for log in root.findall("log")
        ]
    )