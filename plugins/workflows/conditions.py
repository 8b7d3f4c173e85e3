"""
Step Conditions

Evaluate the small condition language used by the ``condition`` field of a
step: a single comparison or a bare truthiness check, optionally negated.

    steps.summarize.output.has_apm_data == true
    variables.target >= 99
    not variables.dry_run
    service_name
"""

import logging
import re
from typing import Any, Callable, Tuple

logger = logging.getLogger(__name__)

Lookup = Callable[[str], Tuple[bool, Any]]

# Longest operators first so ">=" is not read as ">".
OPERATORS = (">=", "<=", "!=", "==", ">", "<")

_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")
_PATH = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z0-9_-]+)*$")


def _literal(text: str) -> Tuple[bool, Any]:
    if text in ("true", "True"):
        return True, True
    if text in ("false", "False"):
        return True, False
    if text in ("null", "None"):
        return True, None
    if _NUMBER.match(text):
        return True, float(text) if "." in text else int(text)
    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        return True, text[1:-1]
    return False, None


def _strip_token(text: str) -> str:
    if text.startswith("${") and text.endswith("}"):
        return text[2:-1].strip()
    if text.startswith("$"):
        return text[1:]
    return text


def _operand(text: str, lookup: Lookup, bare_word_is_text: bool) -> Any:
    text = _strip_token(text.strip())

    is_literal, value = _literal(text)
    if is_literal:
        return value

    if _PATH.match(text):
        found, value = lookup(text)
        if found:
            return value
        # Unresolved single words on the right-hand side compare as strings.
        return text if bare_word_is_text and "." not in text else None

    return text


def _equal(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return left is right or str(left).lower() == str(right).lower()
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if isinstance(left, (dict, list)) or isinstance(right, (dict, list)):
        return left == right
    return str(left) == str(right)


def _as_number(value: Any) -> Any:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str) and _NUMBER.match(value.strip()):
        return float(value)
    return None


def _compare(op: str, left: Any, right: Any) -> bool:
    if op == "==":
        return _equal(left, right)
    if op == "!=":
        return not _equal(left, right)

    l_num, r_num = _as_number(left), _as_number(right)
    if l_num is None or r_num is None:
        return False
    if op == ">":
        return l_num > r_num
    if op == "<":
        return l_num < r_num
    if op == ">=":
        return l_num >= r_num
    return l_num <= r_num


def _split(expression: str) -> Tuple[str, str, str]:
    for op in OPERATORS:
        idx = expression.find(op)
        if idx != -1:
            return expression[:idx], op, expression[idx + len(op):]
    return expression, "", ""


def evaluate_condition(expression: str, lookup: Lookup) -> bool:
    """
    Evaluate a step condition.

    Args:
        expression: Condition text from the step definition
        lookup: Callable resolving a dotted path to (found, value)

    Returns:
        True if the step should run
    """
    text = expression.strip()
    negate = False
    if text.startswith("!") and not text.startswith("!="):
        negate, text = True, text[1:].strip()
    elif text.startswith("not "):
        negate, text = True, text[4:].strip()

    left, op, right = _split(text)
    if op:
        result = _compare(
            op, _operand(left, lookup, False), _operand(right, lookup, True)
        )
    else:
        result = _truthy(left, lookup)

    logger.debug(f"Condition '{expression}' evaluated to {result != negate}")
    return result != negate


def _truthy(text: str, lookup: Lookup) -> bool:
    text = _strip_token(text.strip())
    is_literal, value = _literal(text)
    if is_literal:
        return bool(value)
    if not _PATH.match(text):
        logger.warning(f"Condition '{text}' is not a path or literal; treating as false")
        return False
    found, value = lookup(text)
    return bool(value) if found else False
