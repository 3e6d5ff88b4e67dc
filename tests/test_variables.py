"""
Tests for ${...} substitution in path settings.
"""

import os
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from syntree.lsp.variables import substitute, variables


class TestSubstitute:

    def test_user_home(self):
        assert substitute("${userHome}/bin/stree") == f"{Path.home()}/bin/stree"

    def test_path_separator(self):
        assert substitute("a${pathSeparator}b") == f"a{os.sep}b"

    def test_cwd_uses_given_directory(self, tmp_path):
        assert substitute("${cwd}/bin/stree", str(tmp_path)) == f"{tmp_path}/bin/stree"

    def test_cwd_defaults_to_process_cwd(self):
        assert substitute("${cwd}") == os.getcwd()

    def test_unknown_variable_left_alone(self):
        assert substitute("${workspaceFolder}/stree") == "${workspaceFolder}/stree"

    def test_plain_path_unchanged(self):
        assert substitute("/usr/local/bin/stree") == "/usr/local/bin/stree"

    def test_multiple_variables(self, tmp_path):
        result = substitute("${cwd}${pathSeparator}${cwd}", str(tmp_path))
        assert result == f"{tmp_path}{os.sep}{tmp_path}"


def test_variables_keys():
    assert set(variables()) == {"userHome", "pathSeparator", "cwd"}
