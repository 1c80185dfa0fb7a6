"""Optional formatting of rewritten files with isort and black.

Copyright (c) 2025 Jim Schilling
This software is released under the MIT License.
"""

import logging

import black
import isort

logger = logging.getLogger(__name__)


class CodeFormatter:
    """Sort imports with ``isort`` then format with ``black``.

    A file that fails to format is returned unchanged and a warning is
    logged; formatting never blocks a rewrite from being written.
    """

    def __init__(self, line_length: int = 120) -> None:
        self.line_length = line_length

    def format(self, code: str, filename: str = "<unknown>") -> str:
        try:
            formatted = self._apply_isort(code)
            return self._apply_black(formatted)
        except Exception as e:
            logger.warning(f"Formatting failed for {filename}, keeping unformatted output: {e}")
            return code

    def _apply_isort(self, code: str) -> str:
        settings = isort.Config(
            profile="black",
            line_length=self.line_length,
            multi_line_output=3,
            include_trailing_comma=True,
            force_grid_wrap=0,
            use_parentheses=True,
            ensure_newline_before_comments=True,
        )
        return isort.code(code, config=settings)

    def _apply_black(self, code: str) -> str:
        try:
            return black.format_str(code, mode=black.Mode(line_length=self.line_length))
        except black.NothingChanged:
            return code
