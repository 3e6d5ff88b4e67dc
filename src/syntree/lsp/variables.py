"""
Variable substitution for path settings.

Supports ``${userHome}``, ``${pathSeparator}`` and ``${cwd}``. Unknown
variables are left as written.
"""

import os
import re
from pathlib import Path
from typing import Dict, Optional

VARIABLE_PATTERN = re.compile(r"\$\{(\w+)\}")


def variables(cwd: Optional[str] = None) -> Dict[str, str]:
    return {
        "userHome": str(Path.home()),
        "pathSeparator": os.sep,
        "cwd": cwd or os.getcwd(),
    }


def substitute(value: str, cwd: Optional[str] = None) -> str:
    """Expand the supported variables in ``value``."""
    known = variables(cwd)
    return VARIABLE_PATTERN.sub(lambda match: known.get(match.group(1), match.group(0)), value)
