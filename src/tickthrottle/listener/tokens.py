"""
Supervisord event header parsing.

A header line looks like:
    ver:3.0 server:supervisor serial:21 pool:listener poolserial:10 eventname:TICK_60 len:15
"""

from typing import Dict


def parse_header(line: str) -> Dict[str, str]:
    """
    Parse one header line into a key -> value mapping.

    Pairs are separated by single spaces and split on their first colon.
    Pairs without a colon, or with an empty key, are skipped. When a key
    repeats, the last occurrence wins.
    """
    headers: Dict[str, str] = {}
    for pair in line.split(' '):
        key, sep, value = pair.partition(':')
        key = key.strip()
        if not sep or not key:
            continue
        headers[key] = value.strip()
    return headers


def payload_length(headers: Dict[str, str]) -> int:
    """Length of the payload announced by the `len` header, 0 if absent or invalid"""
    raw = headers.get('len', '')
    if not raw.isdigit():
        return 0
    return int(raw)
