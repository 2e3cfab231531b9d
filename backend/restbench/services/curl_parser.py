"""
cURL command parser.

Turns a pasted ``curl`` invocation into method / url / headers / params /
body. The input is user-authored text, so nothing here raises: anything
that cannot be understood is logged and ``None`` is returned.
"""
import json
import logging
import re
import shlex
from urllib.parse import parse_qsl

from restbench.models.request import HttpMethod
from restbench.schemas.common import KeyValue
from restbench.schemas.imports import ParsedCurlCommand

logger = logging.getLogger(__name__)

# Long names every value-taking option is normalised to
_SHORT_FLAGS = {
    "-X": "--request",
    "-H": "--header",
    "-d": "--data",
    "-u": "--user",
    "-A": "--user-agent",
    "-b": "--cookie",
    "-e": "--referer",
    "-F": "--form",
    "-o": "--output",
    "-m": "--max-time",
    "-x": "--proxy",
    "-c": "--cookie-jar",
    "-T": "--upload-file",
    "-w": "--write-out",
    "-r": "--range",
    "-K": "--config",
    "-E": "--cert",
}

_LONG_VALUE_FLAGS = set(_SHORT_FLAGS.values()) | {
    "--data-raw",
    "--data-binary",
    "--data-ascii",
    "--data-urlencode",
    "--json",
    "--url",
    "--connect-timeout",
    "--retry",
    "--resolve",
    "--cacert",
    "--key",
    "--limit-rate",
    "--max-redirs",
    "--oauth2-bearer",
}

# First flag present wins, regardless of where it appears in the command
_BODY_FLAGS = ("--data-raw", "--data-binary", "--data", "--data-urlencode", "--json")

_KNOWN_METHODS = {m.value for m in HttpMethod}

_ANSI_C_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"', "0": "\0"}
_ANSI_C_QUOTED = re.compile(r"\$'((?:[^'\\]|\\.)*)'")


def _normalize(command: str) -> str:
    command = re.sub(r"\\\r?\n", " ", command)
    command = re.sub(r"\s+", " ", command)
    return command.strip()


def _expand_ansi_c_quotes(command: str) -> str:
    """Rewrite ``$'...'`` words, as emitted by browser "Copy as cURL", into plain shell quoting."""
    def unescape(match: re.Match) -> str:
        char = match.group(1)
        return _ANSI_C_ESCAPES.get(char, "\\" + char)

    return _ANSI_C_QUOTED.sub(lambda m: shlex.quote(re.sub(r"\\(.)", unescape, m.group(1))), command)


def _collect_options(words: list[str]) -> tuple[list[tuple[str, str]], list[str]]:
    """Split arguments into ``(long_flag, value)`` pairs and positional words.

    Flags that take no value are dropped; values of value-taking flags are
    never reported as positionals.
    """
    options: list[tuple[str, str]] = []
    positionals: list[str] = []
    i = 0

    while i < len(words):
        word = words[i]

        if not word.startswith("-") or word == "-":
            positionals.append(word)
            i += 1
            continue

        if word.startswith("--"):
            name, eq, inline = word.partition("=")
            if name in _LONG_VALUE_FLAGS:
                if eq:
                    options.append((name, inline))
                elif i + 1 < len(words):
                    options.append((name, words[i + 1]))
                    i += 1
            i += 1
            continue

        short = word[:2]
        if short in _SHORT_FLAGS:
            if len(word) > 2:
                options.append((_SHORT_FLAGS[short], word[2:]))
            elif i + 1 < len(words):
                options.append((_SHORT_FLAGS[short], words[i + 1]))
                i += 1
        i += 1

    return options, positionals


def _first(options: list[tuple[str, str]], flag: str) -> str | None:
    for name, value in options:
        if name == flag:
            return value
    return None


def _looks_like_url(text: str) -> bool:
    lowered = text.lower()
    return (
        lowered.startswith("http://")
        or lowered.startswith("https://")
        or "://" in text
        or text.startswith("{{")
    )


def _extract_url(options: list[tuple[str, str]], positionals: list[str]) -> str | None:
    explicit = _first(options, "--url")
    if explicit:
        return explicit
    for word in positionals:
        if _looks_like_url(word):
            return word
    for word in positionals:
        if word:
            return word
    return None


def _split_query(url: str) -> tuple[str, list[KeyValue]]:
    base, sep, query = url.partition("?")
    if not sep:
        return url, []
    query = query.split("#", 1)[0]
    params = [
        KeyValue(key=key, value=value, enabled=True)
        for key, value in parse_qsl(query, keep_blank_values=True)
    ]
    return base, params


def _extract_headers(options: list[tuple[str, str]]) -> list[KeyValue]:
    headers: list[KeyValue] = []
    positions: dict[str, int] = {}

    for name, value in options:
        if name == "--header":
            raw = value
        elif name == "--user-agent":
            raw = f"User-Agent: {value}"
        elif name == "--cookie" and "=" in value:
            raw = f"Cookie: {value}"
        else:
            continue

        key, sep, header_value = raw.partition(":")
        key = key.strip()
        if not sep or not key:
            logger.warning("cURL import: skipping malformed header %r", raw)
            continue

        lowered = key.lower()
        if lowered in positions:
            # Later duplicates overwrite the value but keep the first position
            headers[positions[lowered]].value = header_value.strip()
        else:
            positions[lowered] = len(headers)
            headers.append(KeyValue(key=key, value=header_value.strip(), enabled=True))

    return headers


def _extract_body(options: list[tuple[str, str]]) -> str | None:
    for flag in _BODY_FLAGS:
        value = _first(options, flag)
        if value:
            return _pretty_json(value)
    return None


def _pretty_json(body: str) -> str:
    stripped = body.strip()
    looks_json = (stripped.startswith("{") and stripped.endswith("}")) or (
        stripped.startswith("[") and stripped.endswith("]")
    )
    if not looks_json:
        return body
    try:
        return json.dumps(json.loads(stripped), indent=2, ensure_ascii=False)
    except ValueError:
        return body


def _parse(command: str) -> ParsedCurlCommand | None:
    cleaned = _normalize(command)
    if cleaned.startswith("$"):
        cleaned = cleaned[1:].strip()

    try:
        words = shlex.split(_expand_ansi_c_quotes(cleaned))
    except ValueError as e:
        logger.warning("cURL import rejected: %s", e)
        return None

    if not words or words[0].lower() != "curl":
        logger.warning("cURL import rejected: command does not start with 'curl'")
        return None

    options, positionals = _collect_options(words[1:])

    raw_url = _extract_url(options, positionals)
    if not raw_url:
        logger.warning("cURL import rejected: no URL found")
        return None
    url, params = _split_query(raw_url)

    method_flag = _first(options, "--request")
    if method_flag:
        method = method_flag.upper()
        if method not in _KNOWN_METHODS:
            logger.warning("cURL import: unrecognised HTTP method %r kept as-is", method)
    else:
        method = "GET"

    headers = _extract_headers(options)
    body = _extract_body(options)

    # An explicit -X/--request always wins over the body-implies-POST rule
    if body is not None and not method_flag:
        method = "POST"

    return ParsedCurlCommand(method=method, url=url, headers=headers, params=params, body=body)


def parse_curl(command: str | None) -> ParsedCurlCommand | None:
    """Parse a cURL command string; ``None`` means it could not be understood."""
    if not isinstance(command, str) or not command.strip():
        logger.warning("cURL import rejected: empty input")
        return None
    try:
        return _parse(command)
    except Exception:
        logger.exception("cURL import failed unexpectedly")
        return None
