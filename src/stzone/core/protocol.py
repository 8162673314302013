"""XML bodies and documents of the device control API."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from xml.sax.saxutils import escape, quoteattr

from stzone.errors import InitializationFailure
from stzone.models import DeviceInfo, KeyState, NetworkInterface, Zone


def _required_text(element: ET.Element, path: str) -> str:
    value = element.findtext(path)
    if value is None or not value.strip():
        raise ValueError(f"missing <{path}>")
    return value.strip()


def _parse_interface(element: ET.Element) -> NetworkInterface:
    return NetworkInterface(
        mac_address=_required_text(element, "macAddress"),
        ip_address=_required_text(element, "ipAddress"),
    )


def parse_info(address: str, xml_text: str) -> DeviceInfo:
    """Parse an ``/info`` response.

    Both ``networkInfo`` records are required; a device reporting only one
    interface is treated like an unparsable one.
    """
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        raise InitializationFailure(address, f"malformed info document: {exc}") from exc

    try:
        device_id = root.get("deviceID")
        if not device_id:
            raise ValueError("missing deviceID attribute")
        interfaces = root.findall("networkInfo")
        if len(interfaces) < 2:
            raise ValueError(f"expected 2 networkInfo records, got {len(interfaces)}")
        return DeviceInfo(
            device_id=device_id,
            name=_required_text(root, "name"),
            type=_required_text(root, "type"),
            primary=_parse_interface(interfaces[0]),
            secondary=_parse_interface(interfaces[1]),
        )
    except ValueError as exc:
        raise InitializationFailure(address, f"incomplete info document: {exc}") from exc


def volume_body(level: int) -> str:
    return f"<volume>{level}</volume>"


def key_body(key: str, state: KeyState, sender: str) -> str:
    return f"<key state={quoteattr(state.value)} sender={quoteattr(sender)}>{escape(key)}</key>"


def zone_body(zone: Zone) -> str:
    members = "".join(
        f"<member ipaddress={quoteattr(member.ip_address)}>{escape(member.mac_address)}</member>"
        for member in zone.members
    )
    return (
        f"<zone master={quoteattr(zone.master_mac)} "
        f"senderIPAddress={quoteattr(zone.sender_ip)}>{members}</zone>"
    )
