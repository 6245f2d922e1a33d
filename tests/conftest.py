# tests/conftest.py
from pathlib import Path
from typing import Dict, Union

import pytest


@pytest.fixture
def make_files(tmp_path):
    """Creates files under tmp_path from a {relative_path: content} mapping."""
    def _make(files: Dict[str, Union[str, bytes]], root: Path = None) -> Path:
        root = root or tmp_path
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
        return root
    return _make


@pytest.fixture
def no_encoder(mocker):
    """Forces count_tokens onto the character estimate (no tiktoken download)."""
    return mocker.patch("promptgen.core.token_counter._get_cached_encoder", return_value=None)
