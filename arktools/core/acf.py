"""
Parser for Valve's nested key/value text format (``.acf`` manifests and
``app_info_print`` output).

The format looks like::

    "AppState"
    {
        "appid"		"376030"
        "InstalledDepots"
        {
            "1006"
            {
                "manifest"		"6912453647411644579"
            }
        }
    }

It is flattened into ``(path, value)`` pairs such as
``(".AppState.InstalledDepots.1006.manifest", "6912453647411644579")``.
Parsing is best-effort: an unterminated block returns what was read so far.
"""

from typing import Dict, Iterable, List, Sequence, Tuple

from arktools.common.errors import AcfFormatError

AcfPair = Tuple[str, str]

MAX_DEPTH = 64


def _unquote(text: str) -> str:
    """Remove one layer of double quotes."""
    text = text.strip()
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text


def _split_line(line: str) -> Tuple[str, str]:
    parts = line.strip().split("\t", 1)
    key = parts[0]
    value = parts[1] if len(parts) > 1 else ""
    return _unquote(key), _unquote(value)


def _parse_block(lines: Sequence[str], start: int, prefix: str, depth: int) -> Tuple[int, List[AcfPair]]:
    """Parse lines from ``start`` until the closing brace of this level.

    Returns the number of lines consumed (including the closing brace) and the
    pairs collected at this level and below.
    """
    if depth > MAX_DEPTH:
        raise AcfFormatError(f"nesting deeper than {MAX_DEPTH} levels")

    pairs: List[AcfPair] = []
    section = ""
    i = start
    while i < len(lines):
        key, value = _split_line(lines[i])
        i += 1

        if key == "{":
            consumed, sub = _parse_block(lines, i, f"{prefix}.{section}", depth + 1)
            i += consumed
            pairs.extend(sub)
        elif key == "}":
            return i - start, pairs
        elif value == "":
            if key:
                section = key
        else:
            pairs.append((f"{prefix}.{key}", value))

    return i - start, pairs


def parse_acf(text: str, prefix: str = "") -> List[AcfPair]:
    """Flatten manifest text into dotted-path pairs in document order."""
    _, pairs = _parse_block(text.split("\n"), 0, prefix, 0)
    return pairs


def acf_to_dict(pairs: Iterable[AcfPair]) -> Dict[str, str]:
    """Collapse pairs into a mapping; the last duplicate wins."""
    return {path: value for path, value in pairs}


def split_path(path: str) -> List[str]:
    """Split a dotted path into its keys (the leading empty root is dropped)."""
    keys = path.split(".")
    if keys and keys[0] == "":
        keys = keys[1:]
    return keys


__all__ = ["AcfPair", "MAX_DEPTH", "parse_acf", "acf_to_dict", "split_path"]
