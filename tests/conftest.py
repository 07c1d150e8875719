"""Pytest configuration for the rayc test suite.

Case files (*.tests) hold one or more cases in this format:

    === test name
    source code here
    ---
    expected result
    ---

Expected results are either `ok`, `error: <ErrorClass>: <message substring>`,
or phase-specific text (token listings, assembly fragments).
"""

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).parent.parent

# Make the rayc package importable without installing it
sys.path.insert(0, str(ROOT))

from rayc.errors import CompileError  # noqa: E402


def parse_test_file(path: Path) -> list[tuple[str, str, str]]:
    """Parse .tests file into (name, input, expected) tuples."""
    lines = path.read_text().split("\n")
    result: list[tuple[str, str, str]] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("=== "):
            test_name = line[4:].strip()
            i += 1
            input_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                input_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            expected_lines: list[str] = []
            while i < len(lines) and not lines[i].startswith("---"):
                expected_lines.append(lines[i])
                i += 1
            if i < len(lines) and lines[i] == "---":
                i += 1
            test_input = "\n".join(input_lines)
            expected = "\n".join(expected_lines).strip()
            result.append((test_name, test_input, expected))
        else:
            i += 1
    return result


def discover_tests(directory: Path) -> list:
    """pytest.param(input, expected) for every case under directory, id'd file/name."""
    params = []
    for test_file in sorted(directory.glob("*.tests")):
        for name, input_code, expected in parse_test_file(test_file):
            params.append(pytest.param(input_code, expected, id=f"{test_file.stem}/{name}"))
    return params


def check_expected_error(error: CompileError | None, expected: str) -> None:
    """Fail unless error matches an `error: <ErrorClass>: <substring>` expectation."""
    detail = expected[len("error:") :].strip()
    class_name, _, message = detail.partition(":")
    message = message.strip()
    if error is None:
        pytest.fail(f"Expected {class_name}, but compilation succeeded")
    if type(error).__name__ != class_name.strip():
        pytest.fail(f"Expected {class_name}, got {type(error).__name__}: {error}")
    if message and message not in str(error):
        pytest.fail(f"Expected message containing {message!r}, got {str(error)!r}")


def contains_normalized(haystack: str, needle: str) -> bool:
    """Check if needle appears in haystack, normalizing line-by-line whitespace."""
    needle_lines = [line.strip() for line in needle.strip().split("\n") if line.strip()]
    haystack_lines = [line.strip() for line in haystack.split("\n") if line.strip()]
    if not needle_lines:
        return True
    for i in range(len(haystack_lines)):
        if haystack_lines[i] == needle_lines[0]:
            match = True
            for j in range(1, len(needle_lines)):
                if (
                    i + j >= len(haystack_lines)
                    or haystack_lines[i + j] != needle_lines[j]
                ):
                    match = False
                    break
            if match:
                return True
    return False
