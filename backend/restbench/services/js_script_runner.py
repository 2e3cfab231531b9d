"""
JavaScript-to-Python script transformer.

Postman exports carry their test scripts as JavaScript. Rather than embedding
a JS engine, the common subset of those scripts (``pm.*``/``console.*`` calls,
declarations, comparisons, simple blocks) is rewritten line by line into the
Python dialect the sandboxed runner executes.
"""
import re

_INDENT = "    "

_BLOCK_HEADERS = [
    (re.compile(r"^if\s*\((.*)\)\s*\{$"), "if {}:"),
    (re.compile(r"^else\s+if\s*\((.*)\)\s*\{$"), "elif {}:"),
    (re.compile(r"^while\s*\((.*)\)\s*\{$"), "while {}:"),
]
_ELSE = re.compile(r"^else\s*\{$")
_FOR_OF = re.compile(r"^for\s*\(\s*(?:const|let|var)\s+(\w+)\s+of\s+(.+)\)\s*\{$")

# identifier chains such as pm.response.json().items or data["list"][0]
_OPERAND = r"(\w+(?:\(\))?(?:\.\w+(?:\(\))?|\[[^\]]*\])*)"


def _transform_js_line(line: str) -> str:
    """Transform a single JavaScript statement into Python."""
    result = line.strip()

    # ── Remove trailing semicolons ──
    if result.endswith(";"):
        result = result[:-1].rstrip()

    # ── x++ / x-- ──
    m = re.match(r"^(\w+)\s*(\+\+|--)$", result)
    if m:
        return f"{m.group(1)} {m.group(2)[0]}= 1"

    # ── let/const/var declarations → strip keyword, keep assignment ──
    m = re.match(r"(?:let|const|var)\s+(\w+\s*=(?!=)\s*)(.+)", result)
    if m:
        return m.group(1) + _transform_js_expr(m.group(2))
    m = re.match(r"(?:let|var)\s+(\w+)$", result)
    if m:
        return f"{m.group(1)} = None"

    # ── Direct assignment: name = expr ──
    m = re.match(r"(\w+\s*=(?!=)\s*)(.+)", result)
    if m:
        return m.group(1) + _transform_js_expr(m.group(2))

    # ── pm.environment.set("key", expr): only the value expression is rewritten ──
    m = re.match(r'(pm\.environment\.set\(\s*["\'].+?["\']\s*,\s*)(.+?)(\)\s*)$', result)
    if m:
        return m.group(1) + _transform_js_expr(m.group(2)) + m.group(3)

    # ── console.log/warn/error(expr) ──
    m = re.match(r"(console\.(?:log|warn|error)\(\s*)(.+?)(\)\s*)$", result)
    if m:
        return m.group(1) + _transform_js_expr(m.group(2)) + m.group(3)

    # General line, rewritten as an expression
    return _transform_js_expr(result)


def _transform_js_expr(expr: str) -> str:
    """Transform JavaScript expression syntax into Python equivalents."""
    result = expr.strip()
    if not result:
        return result

    # ── Operators ──
    result = result.replace("===", "==")
    result = result.replace("!==", "!=")
    result = result.replace("&&", " and ")
    result = result.replace("||", " or ")
    # JS ! negation at word boundary (but not !=)
    result = re.sub(r"(?<!=)!(?!=)\s*(?=\w)", " not ", result)

    # ── Boolean/null literals ──
    result = re.sub(r"\btrue\b", "True", result)
    result = re.sub(r"\bfalse\b", "False", result)
    result = re.sub(r"\bnull\b", "None", result)
    result = re.sub(r"\bundefined\b", "None", result)

    # ── .length → len() ──
    result = re.sub(_OPERAND + r"\.length\b", r"len(\1)", result)

    # ── .includes(x) → x in obj ──
    result = re.sub(_OPERAND + r"\.includes\((.+?)\)", r"\2 in \1", result)

    # ── String methods ──
    result = re.sub(r"\.startsWith\(", ".startswith(", result)
    result = re.sub(r"\.endsWith\(", ".endswith(", result)
    result = re.sub(r"\.toUpperCase\(\)", ".upper()", result)
    result = re.sub(r"\.toLowerCase\(\)", ".lower()", result)
    result = re.sub(r"\.trim\(\)", ".strip()", result)
    result = re.sub(_OPERAND + r"\.toString\(\)", r"str(\1)", result)

    # ── typeof x === "type" → isinstance(x, type) ──
    type_map = {
        "string": "str",
        "number": "(int, float)",
        "boolean": "bool",
        "object": "dict",
    }
    for js_type, py_type in type_map.items():
        result = re.sub(
            r"typeof\s+" + _OPERAND + r"\s*==\s*[\"']" + js_type + r"[\"']",
            rf"isinstance(\1, {py_type})",
            result,
        )

    # ── Built-in function mappings ──
    result = re.sub(r"\bparseInt\(", "int(", result)
    result = re.sub(r"\bparseFloat\(", "float(", result)
    result = re.sub(r"\bString\(", "str(", result)
    result = re.sub(r"\bNumber\(", "float(", result)
    result = re.sub(r"\bBoolean\(", "bool(", result)

    # ── Math methods ──
    result = re.sub(r"\bMath\.abs\(", "abs(", result)
    result = re.sub(r"\bMath\.round\(", "round(", result)
    result = re.sub(r"\bMath\.floor\(", "int(", result)
    result = re.sub(r"\bMath\.min\(", "min(", result)
    result = re.sub(r"\bMath\.max\(", "max(", result)

    # ── Array.isArray(x) → isinstance(x, list) ──
    result = re.sub(r"\bArray\.isArray\((.+?)\)", r"isinstance(\1, list)", result)

    # ── JS object literal { key: value } → Python dict {"key": value} ──
    # Quote unquoted object keys, but not http: or https:
    result = re.sub(
        r"(?<=[{,\[])\s*(\b(?!https?|ftp)\w+)\s*:",
        r' "\1":',
        result,
    )

    # ── Simple ternary: condition ? a : b → a if condition else b ──
    ternary_m = re.match(r"^([^?\"'`]+?)\s*\?\s*(.+?)\s*:\s*(.+)$", result)
    if ternary_m:
        cond = _transform_js_expr(ternary_m.group(1).strip())
        true_val = _transform_js_expr(ternary_m.group(2).strip())
        false_val = _transform_js_expr(ternary_m.group(3).strip())
        result = f"{true_val} if {cond} else {false_val}"

    # ── Template literals `...${expr}...` → f-string f"...{expr}..." ──
    if "`" in result:
        result = re.sub(
            r"`([^`]*)`",
            lambda m: 'f"' + re.sub(r"\$\{(.+?)\}", r"{\1}", m.group(1)).replace('"', '\\"') + '"',
            result,
        )

    return result


def _brace_delta(line: str) -> int:
    """Net ``{``/``}`` count outside of string literals."""
    depth = 0
    in_str: str | None = None
    for ch in line:
        if in_str:
            if ch == in_str:
                in_str = None
        elif ch in ('"', "'", "`"):
            in_str = ch
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
    return depth


def _is_block_line(stripped: str) -> bool:
    if stripped.startswith("}"):
        return True
    if _ELSE.match(stripped) or _FOR_OF.match(stripped):
        return True
    return any(pattern.match(stripped) for pattern, _ in _BLOCK_HEADERS)


def _block_header(stripped: str) -> str | None:
    for pattern, template in _BLOCK_HEADERS:
        m = pattern.match(stripped)
        if m:
            return template.format(_transform_js_expr(m.group(1)))
    if _ELSE.match(stripped):
        return "else:"
    m = _FOR_OF.match(stripped)
    if m:
        return f"for {m.group(1)} in {_transform_js_expr(m.group(2))}:"
    return None


def _join_literals(script: str) -> list[str]:
    """Join object literals spread over several lines into one logical line."""
    joined: list[str] = []
    accumulator: list[str] = []
    depth = 0

    for raw_line in script.split("\n"):
        stripped = raw_line.strip()

        if accumulator:
            accumulator.append(stripped)
            depth += _brace_delta(stripped)
            if depth <= 0:
                joined.append(" ".join(accumulator))
                accumulator, depth = [], 0
            continue

        if stripped.startswith("//") or _is_block_line(stripped):
            joined.append(raw_line)
            continue

        delta = _brace_delta(stripped)
        if delta > 0:
            accumulator, depth = [stripped], delta
        else:
            joined.append(raw_line)

    if accumulator:
        joined.append(" ".join(accumulator))
    return joined


def transform_js_script(script: str) -> str:
    """Transform a full JavaScript script into Python."""
    if not script or not script.strip():
        return script

    output: list[str] = []
    level = 0
    # True while the innermost open block has no statement yet
    empty_block = False

    def close_block() -> None:
        nonlocal level, empty_block
        if level == 0:
            return
        if empty_block:
            output.append(_INDENT * level + "pass")
        level -= 1
        empty_block = False

    for line in _join_literals(script):
        stripped = line.strip()
        if not stripped:
            output.append("")
            continue
        if stripped.startswith("//"):
            output.append(_INDENT * level + "#" + stripped[2:])
            continue

        while stripped.startswith("}"):
            close_block()
            stripped = stripped[1:].strip()
        if not stripped or stripped == ";":
            continue

        header = _block_header(stripped)
        if header is not None:
            output.append(_INDENT * level + header)
            level += 1
            empty_block = True
            continue

        output.append(_INDENT * level + _transform_js_line(stripped))
        empty_block = False

    while level > 0:
        close_block()
    return "\n".join(output)
