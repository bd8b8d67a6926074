"""
hotload.backends - Compiler and Loader implementations.

- Compiler / Loader: abstract collaborator protocols
- PythonCompiler: byte-compiles src/ into bin/
- PythonLoader: imports the compiled entry point from bin/
"""

from hotload.backends.base import Compiler, Loader
from hotload.backends.python import PythonCompiler, PythonLoader

__all__ = [
    "Compiler",
    "Loader",
    "PythonCompiler",
    "PythonLoader",
]
