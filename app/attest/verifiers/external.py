"""External-process evidence verifier.

The quote is written to a private temporary file and handed to a
verification tool as `<tool> -in <file>`. Exit status 0 means verified,
anything else rejected. The temporary file exists only inside scratch_file().
"""

import logging
import os
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from app.attest.classify import EvidenceFamily
from app.attest.exceptions import VerifierError
from app.attest.verdict import Verdict
from app.attest.verifiers.base import EvidenceVerifier
from app.core.config import SGX_CHECK_TIMEOUT_SECONDS, SGX_CHECK_TOOL

log = logging.getLogger(__name__)


@contextmanager
def scratch_file(data: bytes, prefix: str = "quote-", suffix: str = ".dat") -> Iterator[Path]:
    """Write data to an exclusively created temp file, yield its path, delete it.

    The file is removed on every exit path, including write failures and
    exceptions raised inside the with-block.

    Raises:
        VerifierError: If the file cannot be created or written
    """
    try:
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix)
    except OSError as e:
        raise VerifierError(f"Failed to create temporary quote file: {e}")

    path = Path(name)
    try:
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
        except OSError as e:
            raise VerifierError(f"Failed to write quote: {e}")
        yield path
    finally:
        path.unlink(missing_ok=True)


class ExternalToolVerifier(EvidenceVerifier):
    """Runs an external verification tool against a quote file.

    Args:
        tool_path: Executable invoked as `<tool_path> -in <file>`
        timeout: Seconds before the tool is killed and the run reported as
            an internal error
        family: Evidence family this verifier serves
        label: Human-readable name used in verdict messages
    """

    def __init__(
        self,
        tool_path: str = SGX_CHECK_TOOL,
        timeout: float = SGX_CHECK_TIMEOUT_SECONDS,
        family: EvidenceFamily = EvidenceFamily.SGX,
        label: str = "SGX",
    ):
        self.tool_path = tool_path
        self.timeout = timeout
        self.family = family
        self.label = label

    def verify(self, raw: bytes) -> Verdict:
        with scratch_file(raw) as path:
            result = self._run_tool(path)

        output = result.stdout.decode("utf-8", errors="replace").strip()
        if result.returncode != 0:
            log.warning(
                f"{self.label} verification tool failed: exit={result.returncode}, "
                f"Output: {output}"
            )
            return Verdict.rejected(f"{self.label} verification failed: {output}", self.family)

        return Verdict.verified(f"{self.label} quote verified via DCAP", self.family)

    def _run_tool(self, path: Path) -> subprocess.CompletedProcess:
        cmd = [self.tool_path, "-in", str(path)]
        try:
            return subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            log.error(f"{self.label} verification tool timed out after {self.timeout}s")
            raise VerifierError(
                f"{self.label} verification timed out after {self.timeout}s"
            )
        except OSError as e:
            log.error(f"{self.label} verification tool could not be started: {e}")
            raise VerifierError(f"{self.label} verification tool unavailable: {e}")
