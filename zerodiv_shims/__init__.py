"""
zerodiv_shims - Static Zero-Divisor Detection for Cppcheck Addons
=================================================================

Decides, without running the program, whether the divisor of a division is
zero on every path that reaches it, and reports such divisions as
cppcheck-addon diagnostics (``zeroDiv`` / ``zeroMod``, CWE-369).

Core modules
------------
program_model
    The read-only program view the evaluator queries.
cppcheck_model
    ``ProgramModel`` over a ``cppcheckdata.Configuration``.
classifier
    Maps divisor expressions onto the shapes the evaluator reasons about.
evaluator
    The recursive decision procedure with its cycle guard.
checkers
    Checker framework, diagnostics, suppressions, runner and CLI.
ast_helper
    Safe accessors and predicates over Cppcheck tokens and scopes.
errors
    Exception hierarchy.

Quick start
-----------
>>> import cppcheckdata
>>> from zerodiv_shims import CheckerRunner
>>> data = cppcheckdata.parsedump("main.c.dump")
>>> results = CheckerRunner().run_all_configurations(data)
>>> print(results.summary())

Package layout
--------------
::

    zerodiv_shims/
    ├── __init__.py            ← this file
    ├── __main__.py            ← python -m zerodiv_shims
    ├── ast_helper.py
    ├── checkers.py
    ├── classifier.py
    ├── cppcheck_model.py
    ├── errors.py
    ├── evaluator.py
    └── program_model.py
"""

from __future__ import annotations

import importlib
import sys
from typing import List

# ---------------------------------------------------------------------------
# Package metadata
# ---------------------------------------------------------------------------

__version__ = "0.1.0"
__author__ = "zerodiv-shims contributors"
__license__ = "MIT"
__all__: List[str] = []          # populated below

# ---------------------------------------------------------------------------
# Internal registry: (module_name, list_of_names_to_re-export)
# ---------------------------------------------------------------------------

_CORE_MODULES = {
    "errors": [
        "ZeroDivShimsError",
        "DataflowRangeError",
        "ConfigurationError",
    ],
    "program_model": [
        "NodeKind",
        "NumericDomain",
        "SymbolKind",
        "ConstantValue",
        "Symbol",
        "CallTarget",
        "SourceLocation",
        "ProgramModel",
    ],
    "cppcheck_model": [
        "CppcheckProgramModel",
        "parse_c_number",
    ],
    "classifier": [
        "classify",
        "LiteralShape",
        "IdentifierShape",
        "SubtractionShape",
        "MultiplicationShape",
        "CallShape",
        "UnclassifiedShape",
    ],
    "evaluator": [
        "EvaluationResult",
        "CallReturnPolicy",
        "EvaluatorConfig",
        "DivisionCheck",
        "VisitedSet",
        "ZeroDivisorEvaluator",
        "check_division",
    ],
    "checkers": [
        "Diagnostic",
        "DiagnosticSeverity",
        "Confidence",
        "SuppressionManager",
        "Checker",
        "CheckerContext",
        "CheckerRegistry",
        "ZeroDivisorChecker",
        "CheckerRunner",
        "CheckerRunResults",
        "run_addon",
    ],
}


def _import_names(module_rel_name: str, names: List[str]) -> None:
    """Import *names* from a submodule and bind them in the package namespace."""
    fq_name = f"{__name__}.{module_rel_name}"
    try:
        mod = importlib.import_module(fq_name)
    except ImportError as exc:
        raise ImportError(
            f"zerodiv_shims: required submodule '{module_rel_name}' "
            f"failed to import: {exc}"
        ) from exc

    current_module = sys.modules[__name__]
    for name in names:
        if not hasattr(mod, name):
            raise AttributeError(f"zerodiv_shims.{module_rel_name} does not export '{name}'")
        setattr(current_module, name, getattr(mod, name))
        __all__.append(name)

    # zerodiv_shims.evaluator.X works as well as zerodiv_shims.X
    setattr(current_module, module_rel_name, mod)
    if module_rel_name not in __all__:
        __all__.append(module_rel_name)


for _mod, _names in _CORE_MODULES.items():
    _import_names(_mod, _names)

del _mod, _names

__all__.append("__version__")
