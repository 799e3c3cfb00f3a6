# File: apiscaffold/policy.py
"""
apiscaffold - Policy Stub Delegation
======================================
Policy classes are not rendered here; creation is handed to the host
framework's own generator (``php artisan make:policy``).
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path
from typing import List, Protocol, Sequence, Union

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("apiscaffold.policy")


class PolicyDelegateError(RuntimeError):
    """The external policy generator could not be run or reported failure."""


class PolicyStubGenerator(Protocol):
    """Capability: create an access-policy stub for a model."""

    def generate(self, model_name: str) -> str:
        """Create the stub and return a short human-readable message."""
        ...


class ArtisanPolicyGenerator:
    """Runs ``php artisan make:policy <Model>Policy --model=<Model>``."""

    def __init__(
        self,
        project_root: Union[str, Path],
        php_binary: str = "php",
        timeout: float = 60.0,
    ) -> None:
        self.project_root: Path = Path(project_root)
        self.php_binary: str = php_binary
        self.timeout: float = timeout

    def command(self, model_name: str) -> List[str]:
        return [
            self.php_binary,
            "artisan",
            "make:policy",
            f"{model_name}Policy",
            f"--model={model_name}",
        ]

    def generate(self, model_name: str) -> str:
        if shutil.which(self.php_binary) is None:
            raise PolicyDelegateError(f"'{self.php_binary}' is not on PATH.")
        if not (self.project_root / "artisan").is_file():
            raise PolicyDelegateError(f"No 'artisan' script in {self.project_root}.")

        argv: Sequence[str] = self.command(model_name)
        logger.debug("Running: %s", " ".join(argv))
        try:
            completed = subprocess.run(
                argv,
                cwd=str(self.project_root),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise PolicyDelegateError(f"make:policy could not run: {exc}") from exc

        output: str = (completed.stdout or completed.stderr or "").strip()
        if completed.returncode != 0:
            raise PolicyDelegateError(
                f"make:policy exited with {completed.returncode}: {output}"
            )
        return output or f"{model_name}Policy created."


__all__: List[str] = [
    "PolicyDelegateError",
    "PolicyStubGenerator",
    "ArtisanPolicyGenerator",
]
