"""
Tests for the external-process verifier.

A small shell script stands in for the verification tool. It records the
quote path it was given so the tests can check the scratch file is gone
after every outcome.
"""

import os
import stat
import tempfile
from pathlib import Path

import pytest

from app.attest.classify import EvidenceFamily
from app.attest.exceptions import VerifierError
from app.attest.verdict import VerdictStatus
from app.attest.verifiers import ExternalToolVerifier, scratch_file

QUOTE = b"\x03\x00\x02\x00" + b"\x5a" * 60


def make_tool(tmp_path: Path, body: str) -> tuple[str, Path]:
    """Write an executable tool script; returns (tool path, record file)."""
    record = tmp_path / "seen-path"
    script = tmp_path / "check"
    script.write_text(
        "#!/bin/sh\n"
        f'echo "$2" > "{record}"\n'
        f'cp "$2" "{record}.data"\n'
        f"{body}\n"
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script), record


def seen_quote_path(record: Path) -> Path:
    return Path(record.read_text().strip())


class TestExternalToolVerifier:
    def test_exit_zero_is_verified(self, tmp_path):
        tool, record = make_tool(tmp_path, 'echo "Quote verified"\nexit 0')
        verdict = ExternalToolVerifier(tool_path=tool, timeout=10).verify(QUOTE)

        assert verdict.status == VerdictStatus.VERIFIED
        assert verdict.family == EvidenceFamily.SGX
        assert verdict.message == "SGX quote verified via DCAP"

    def test_tool_receives_quote_bytes_via_in_flag(self, tmp_path):
        tool, record = make_tool(tmp_path, "exit 0")
        ExternalToolVerifier(tool_path=tool, timeout=10).verify(QUOTE)

        assert Path(f"{record}.data").read_bytes() == QUOTE
        assert not seen_quote_path(record).exists()

    def test_non_zero_exit_is_rejected_with_output(self, tmp_path):
        tool, record = make_tool(tmp_path, 'echo "TCB out of date" >&2\nexit 1')
        verdict = ExternalToolVerifier(tool_path=tool, timeout=10).verify(QUOTE)

        assert verdict.status == VerdictStatus.REJECTED
        assert verdict.message == "SGX verification failed: TCB out of date"
        assert not seen_quote_path(record).exists()

    def test_timeout_is_internal_error_and_file_removed(self, tmp_path):
        tool, record = make_tool(tmp_path, "exec sleep 10")
        verifier = ExternalToolVerifier(tool_path=tool, timeout=0.5)

        with pytest.raises(VerifierError, match="timed out"):
            verifier.verify(QUOTE)
        assert not seen_quote_path(record).exists()

    def test_missing_tool_is_internal_error(self, tmp_path):
        verifier = ExternalToolVerifier(tool_path=str(tmp_path / "no-such-tool"), timeout=5)
        with pytest.raises(VerifierError, match="unavailable"):
            verifier.verify(QUOTE)

    def test_temp_file_creation_failure_is_internal_error(self, tmp_path, monkeypatch):
        tool, record = make_tool(tmp_path, "exit 0")

        def fail_mkstemp(*args, **kwargs):
            raise OSError("No space left on device")

        monkeypatch.setattr(tempfile, "mkstemp", fail_mkstemp)
        with pytest.raises(VerifierError, match="temporary quote file"):
            ExternalToolVerifier(tool_path=tool, timeout=5).verify(QUOTE)
        assert not record.exists()


class TestScratchFile:
    def test_file_holds_data_inside_block(self):
        with scratch_file(b"payload") as path:
            assert path.read_bytes() == b"payload"
            mode = stat.S_IMODE(os.stat(path).st_mode)
            assert mode & 0o077 == 0
        assert not path.exists()

    def test_removed_when_block_raises(self):
        with pytest.raises(RuntimeError):
            with scratch_file(b"payload") as path:
                raise RuntimeError("boom")
        assert not path.exists()

    def test_each_use_gets_a_distinct_file(self):
        with scratch_file(b"a") as first, scratch_file(b"b") as second:
            assert first != second
            assert first.read_bytes() == b"a"
            assert second.read_bytes() == b"b"
