"""CLI tests for the rayc entry point."""

import json
import subprocess
import sys
from pathlib import Path

import pytest

from rayc.cli import main

ROOT = Path(__file__).parent.parent

HELLO = """\
extern putchar
func main() {
    putchar(72)
    return(0)
}
"""


def run_cli(*args: str) -> subprocess.CompletedProcess[bytes]:
    """Run rayc as a module, the way an installed script would."""
    return subprocess.run(
        [sys.executable, "-m", "rayc", *args],
        capture_output=True,
        cwd=ROOT,
    )


@pytest.fixture
def hello(tmp_path: Path) -> Path:
    path = tmp_path / "hello.ray"
    path.write_text(HELLO)
    return path


def test_compile_writes_sibling_listing(hello: Path):
    result = run_cli(str(hello))
    assert result.returncode == 0, result.stderr.decode(errors="replace")
    assert result.stdout == b""
    listing = hello.with_suffix(".asm").read_text()
    assert listing.startswith("format ELF64\n")
    assert "call putchar" in listing


def test_output_flag(hello: Path, tmp_path: Path):
    out = tmp_path / "custom.s"
    result = run_cli("-o", str(out), str(hello))
    assert result.returncode == 0
    assert out.exists()
    assert not hello.with_suffix(".asm").exists()


def test_compile_error_exits_one(tmp_path: Path):
    path = tmp_path / "bad.ray"
    path.write_text("func main() {\n    mul(2, 3)\n}\n")
    result = run_cli(str(path))
    assert result.returncode == 1
    stderr = result.stderr.decode()
    assert "DefinitionError" in stderr
    assert "function 'mul' is not defined at line 2 col 5" in stderr
    assert not path.with_suffix(".asm").exists()


def test_missing_main_exits_one(tmp_path: Path):
    path = tmp_path / "lib.ray"
    path.write_text("func helper() {}\n")
    result = run_cli(str(path))
    assert result.returncode == 1
    assert "MissingEntryPointError" in result.stderr.decode()


def test_missing_file(tmp_path: Path):
    result = run_cli(str(tmp_path / "nope.ray"))
    assert result.returncode == 1
    assert "No such file or directory" in result.stderr.decode()


def test_invalid_utf8(tmp_path: Path):
    path = tmp_path / "bin.ray"
    path.write_bytes(b"\xff\xfe")
    result = run_cli(str(path))
    assert result.returncode == 1
    assert "invalid utf-8" in result.stderr.decode()


def test_stop_at_tokens(hello: Path):
    result = run_cli("--stop-at", "tokens", str(hello))
    assert result.returncode == 0
    lines = result.stdout.decode().splitlines()
    assert lines[0] == "Token(KEYWORD, 'extern', 1, 1)"
    assert lines[-1].startswith("Token(EOF, 'EOF'")
    assert not hello.with_suffix(".asm").exists()


def test_stop_at_parse(hello: Path):
    result = run_cli("--stop-at", "parse", str(hello))
    assert result.returncode == 0
    nodes = json.loads(result.stdout)
    assert nodes[0] == {
        "kind": "Extern",
        "functions": ["putchar"],
        "pos": {"line": 1, "col": 1},
    }
    assert nodes[1]["kind"] == "Function"
    assert nodes[1]["body"][0]["args"] == [{"kind": "Literal", "value": 72}]


def test_verbose_logs_phases(hello: Path):
    result = run_cli("--verbose", str(hello))
    assert result.returncode == 0
    stderr = result.stderr.decode()
    assert "rayc.parse" in stderr
    assert "rayc.codegen" in stderr


def test_quiet_by_default(hello: Path):
    result = run_cli(str(hello))
    assert result.stderr == b""


def test_help():
    result = run_cli("--help")
    assert result.returncode == 0
    assert b"--stop-at" in result.stdout


def test_no_arguments():
    result = run_cli()
    assert result.returncode == 2
    assert b"missing file argument" in result.stderr


@pytest.mark.parametrize(
    "args",
    [
        ["--bogus", "x.ray"],
        ["a.ray", "b.ray"],
        ["--stop-at"],
        ["--stop-at", "codegen", "x.ray"],
    ],
    ids=["unknown-flag", "extra-argument", "missing-phase", "unknown-phase"],
)
def test_usage_errors(args: list[str]):
    assert main(args) == 2


def test_refuses_to_overwrite_source(hello: Path):
    assert main(["-o", str(hello), str(hello)]) == 1
    assert hello.read_text() == HELLO


def test_main_in_process(hello: Path, tmp_path: Path):
    out = tmp_path / "out.asm"
    assert main(["--output", str(out), str(hello)]) == 0
    assert "public main" in out.read_text()
