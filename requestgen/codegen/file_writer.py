"""File writing utilities for generated Python code.

This module writes generated request builder modules to the filesystem,
validating that they compile first.
"""

from pathlib import Path

from upath import UPath

from requestgen.exceptions import CodeGenerationError, OutputError

__all__ = ['PythonFileWriter', 'validate_source']


def validate_source(source: str, name: str = '<generated>') -> None:
    """Check that generated source compiles.

    Raises:
        CodeGenerationError: If the code is not valid Python.
    """
    try:
        compile(source, name, 'exec')
    except SyntaxError as e:
        raise CodeGenerationError('generated code does not compile', context=name, cause=e)


class PythonFileWriter:
    """Writes generated modules to files with validation.

    Example:
        >>> writer = PythonFileWriter()
        >>> writer.write_source('import re', Path('output_requestgen.py'))
    """

    def write_source(self, source: str, path: UPath | Path | str) -> None:
        """Validate generated source and write it to ``path``.

        Raises:
            CodeGenerationError: If the code is not valid Python.
            OutputError: If the file cannot be written.
        """
        path = UPath(path)
        validate_source(source, str(path))

        if not source.endswith('\n'):
            source += '\n'

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source, encoding='utf-8')
        except OSError as e:
            raise OutputError(str(path), e)
