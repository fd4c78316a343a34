"""
zerodiv_shims/checkers.py
═════════════════════════

Turns zero-divisor verdicts into cppcheck-addon diagnostics.

A ``CheckerRunner`` takes one ``cppcheckdata.Configuration`` at a time and
drives every registered checker through four phases:

  1. **configure()**        : read options, build the shared program model
  2. **collect_evidence()** : find division sites and evaluate divisors
  3. **diagnose()**         : turn findings into Diagnostics
  4. **report()**           : drop suppressed Diagnostics

The only checker shipped is ``ZeroDivisorChecker`` (zeroDiv / zeroMod,
CWE-369). ``run_addon`` and ``_main`` wrap the runner for ``cppcheck
--addon`` and the ``zerodiv`` command.

License: MIT
"""

from __future__ import annotations

import json
import logging
import sys
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum, auto
from fnmatch import fnmatch
from typing import (
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    Iterable,
    Iterator,
    List,
    Optional,
    Sequence,
    Set,
    Tuple,
    Type,
)

from zerodiv_shims.ast_helper import DIVISION_OPS, MODULO_OPS, tok_op2, tok_str
from zerodiv_shims.cppcheck_model import CppcheckProgramModel
from zerodiv_shims.evaluator import (
    CallReturnPolicy,
    DivisionCheck,
    EvaluatorConfig,
    ZeroDivisorEvaluator,
)
from zerodiv_shims.program_model import ProgramModel, SourceLocation

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: DIAGNOSTICS
# ═════════════════════════════════════════════════════════════════════════

class DiagnosticSeverity(Enum):
    """Severity names of the cppcheck addon protocol."""
    ERROR = "error"
    WARNING = "warning"
    STYLE = "style"
    PERFORMANCE = "performance"
    PORTABILITY = "portability"
    INFORMATION = "information"


class Confidence(Enum):
    """
    How certain a finding is.

    HIGH   : the divisor is proved zero on every path
    MEDIUM : the proof needs the path-insensitive call rule
             (some return of a called function is zero, not every one)
    """
    HIGH = auto()
    MEDIUM = auto()


@dataclass(frozen=True)
class Diagnostic:
    """
    One finding, serialisable as a cppcheck addon JSON line or as a
    GCC-style text line.

    ``extra`` carries the divisor text; ``cwe`` is 0 when there is none.
    """
    error_id: str
    message: str
    severity: DiagnosticSeverity
    location: SourceLocation
    confidence: Confidence = Confidence.HIGH
    cwe: int = 0
    checker_name: str = ""
    addon: str = "zerodiv-shims"
    extra: str = ""

    def to_cppcheck_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "file": self.location.file,
            "linenr": self.location.line,
            "column": self.location.column,
            "severity": self.severity.value,
            "message": self.message,
            "addon": self.addon,
            "errorId": self.error_id,
            "extra": self.extra,
        }
        if self.cwe:
            payload["cwe"] = self.cwe
        return payload

    def to_json_str(self) -> str:
        return json.dumps(self.to_cppcheck_json())

    def to_gcc_format(self) -> str:
        """``file:line:col: severity: message [errorId]``"""
        return f"{self.location}: {self.severity.value}: {self.message} [{self.error_id}]"


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: SUPPRESSIONS
# ═════════════════════════════════════════════════════════════════════════

# (error id, file pattern, line); "" and 0 match anything
_Rule = Tuple[str, str, int]


class SuppressionManager:
    """
    Suppression rules as cppcheck records them in the dump
    (``// cppcheck-suppress zeroDiv``, ``--suppress=zeroDiv:main.c``) plus
    ids suppressed globally from the command line. An error id of ``*``
    suppresses everything its file/line part matches.
    """

    def __init__(self) -> None:
        self._rules: Set[_Rule] = set()

    def load_inline_suppressions(self, source: Any) -> None:
        """Read ``source.suppressions`` (a dump or a configuration)."""
        for supp in getattr(source, "suppressions", None) or ():
            error_id = getattr(supp, "errorId", None)
            if error_id:
                self._rules.add((
                    error_id,
                    getattr(supp, "fileName", None) or "",
                    int(getattr(supp, "lineNumber", None) or 0),
                ))

    def add_global_suppression(self, error_id: str) -> None:
        self._rules.add((error_id, "", 0))

    @staticmethod
    def _matches(rule: _Rule, diag: Diagnostic) -> bool:
        error_id, pattern, line = rule
        if error_id not in (diag.error_id, "*"):
            return False
        loc = diag.location
        if pattern and not (
            pattern == loc.file or loc.file.endswith(pattern) or fnmatch(loc.file, pattern)
        ):
            return False
        # An inline comment may sit on the line above the finding
        return not line or loc.line in (line, line + 1)

    def is_suppressed(self, diag: Diagnostic) -> bool:
        return any(self._matches(rule, diag) for rule in self._rules)

    def filter_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> List[Diagnostic]:
        return [d for d in diagnostics if not self.is_suppressed(d)]


# ═════════════════════════════════════════════════════════════════════════
#  PART 3: CHECKER FRAMEWORK
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CheckerContext:
    """
    State shared by the checkers run on one configuration.

    ``analyses`` caches results several checkers may need, such as the
    program model; ``stats`` collects counters for the run summary.
    """
    cfg: Any
    suppressions: SuppressionManager = field(default_factory=SuppressionManager)
    options: Dict[str, Any] = field(default_factory=dict)
    analyses: Dict[str, Any] = field(default_factory=dict)
    stats: Dict[str, Any] = field(default_factory=dict)

    def program_model(self) -> ProgramModel:
        """The configuration's program model, built on first use."""
        if "program_model" not in self.analyses:
            self.analyses["program_model"] = CppcheckProgramModel(self.cfg)
        return self.analyses["program_model"]


class Checker(ABC):
    """
    Base class for checkers.

    Subclasses set ``name``, ``description``, ``error_ids`` and
    ``cwe_ids``, implement ``collect_evidence()`` and ``diagnose()``, and
    report through ``_emit``.
    """

    name: ClassVar[str] = "base-checker"
    description: ClassVar[str] = ""
    error_ids: ClassVar[FrozenSet[str]] = frozenset()
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.WARNING
    cwe_ids: ClassVar[Dict[str, int]] = {}

    def __init__(self) -> None:
        self._diagnostics: List[Diagnostic] = []

    def configure(self, ctx: CheckerContext) -> None:
        """Runs before evidence collection."""

    @abstractmethod
    def collect_evidence(self, ctx: CheckerContext) -> None:
        ...

    @abstractmethod
    def diagnose(self, ctx: CheckerContext) -> None:
        ...

    def report(self, ctx: CheckerContext) -> List[Diagnostic]:
        return ctx.suppressions.filter_diagnostics(self._diagnostics)

    def _emit(
        self,
        error_id: str,
        message: str,
        location: SourceLocation,
        confidence: Confidence = Confidence.HIGH,
        extra: str = "",
    ) -> None:
        self._diagnostics.append(Diagnostic(
            error_id=error_id,
            message=message,
            severity=self.default_severity,
            location=location,
            confidence=confidence,
            cwe=self.cwe_ids.get(error_id, 0),
            checker_name=self.name,
            extra=extra,
        ))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} '{self.name}'>"


class CheckerRegistry:
    """Checker classes by name, iterated in registration order."""

    def __init__(self) -> None:
        self._checkers: Dict[str, Type[Checker]] = {}

    def register(self, checker_cls: Type[Checker]) -> None:
        self._checkers[checker_cls.name] = checker_cls

    def get_by_name(self, name: str) -> Optional[Type[Checker]]:
        return self._checkers.get(name)

    def __iter__(self) -> Iterator[Type[Checker]]:
        return iter(list(self._checkers.values()))

    @property
    def names(self) -> List[str]:
        return sorted(self._checkers)


# ═════════════════════════════════════════════════════════════════════════
#  PART 4: ZERO DIVISOR CHECKER (CWE-369)
# ═════════════════════════════════════════════════════════════════════════

def iter_division_sites(cfg: Any, include_modulo: bool = True) -> Iterator[Any]:
    """Yield '/', '/=' (and '%', '%=') tokens that have a divisor operand."""
    ops = DIVISION_OPS | MODULO_OPS if include_modulo else DIVISION_OPS
    for tok in getattr(cfg, "tokenlist", None) or ():
        if tok_str(tok) in ops and tok_op2(tok) is not None:
            yield tok


class ZeroDivisorChecker(Checker):
    """
    Flags divisions whose divisor is provably zero on every path.

    A diagnostic means the division faults whenever it executes, except
    for proofs through the ``CallReturnPolicy.ANY`` call rule, which are
    reported with MEDIUM confidence.

    CWE-369: Divide By Zero
    """

    name: ClassVar[str] = "zero-divisor"
    description: ClassVar[str] = "Division/modulo by a provably zero divisor"
    error_ids: ClassVar[FrozenSet[str]] = frozenset({"zeroDiv", "zeroMod"})
    default_severity: ClassVar[DiagnosticSeverity] = DiagnosticSeverity.ERROR
    cwe_ids: ClassVar[Dict[str, int]] = {"zeroDiv": 369, "zeroMod": 369}

    def __init__(self) -> None:
        super().__init__()
        self._config = EvaluatorConfig()
        self._evaluator: Optional[ZeroDivisorEvaluator] = None
        self._findings: List[DivisionCheck] = []

    def configure(self, ctx: CheckerContext) -> None:
        self._config = EvaluatorConfig.from_options(ctx.options)
        self._evaluator = ZeroDivisorEvaluator(ctx.program_model(), self._config)

    def collect_evidence(self, ctx: CheckerContext) -> None:
        if self._evaluator is None:
            self.configure(ctx)
        inspect = self._evaluator.inspect_division
        sites = list(iter_division_sites(ctx.cfg, self._config.include_modulo))

        # Each check owns its visited set; sites are independent
        if self._config.max_workers > 1 and len(sites) > 1:
            with ThreadPoolExecutor(max_workers=self._config.max_workers) as executor:
                checks = list(executor.map(inspect, sites))
        else:
            checks = [inspect(tok) for tok in sites]

        self._findings = [c for c in checks if c.is_zero]
        ctx.stats[f"{self.name}_sites"] = len(sites)
        logger.info(
            "%d division sites checked, %d provably zero",
            len(sites), len(self._findings),
        )

    def diagnose(self, ctx: CheckerContext) -> None:
        for check in self._findings:
            is_modulo = tok_str(check.division) in MODULO_OPS
            what = "Modulo" if is_modulo else "Division"
            self._emit(
                error_id="zeroMod" if is_modulo else "zeroDiv",
                message=f"{what} by zero: divisor '{check.divisor_text}' is always zero",
                location=check.location,
                confidence=Confidence.MEDIUM if check.call_rule_only else Confidence.HIGH,
                extra=check.divisor_text,
            )


_DEFAULT_REGISTRY = CheckerRegistry()
_DEFAULT_REGISTRY.register(ZeroDivisorChecker)


# ═════════════════════════════════════════════════════════════════════════
#  PART 5: RUNNER
# ═════════════════════════════════════════════════════════════════════════

@dataclass
class CheckerRunResults:
    """Diagnostics, per-checker grouping and statistics of a run."""
    diagnostics: List[Diagnostic] = field(default_factory=list)
    diagnostics_by_checker: Dict[str, List[Diagnostic]] = field(
        default_factory=lambda: defaultdict(list)
    )
    stats: Dict[str, Any] = field(default_factory=dict)
    checker_names: List[str] = field(default_factory=list)

    def _count(self, severity: DiagnosticSeverity) -> int:
        return sum(1 for d in self.diagnostics if d.severity is severity)

    @property
    def error_count(self) -> int:
        return self._count(DiagnosticSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return self._count(DiagnosticSeverity.WARNING)

    @property
    def total_count(self) -> int:
        return len(self.diagnostics)

    def merge(self, other: CheckerRunResults) -> None:
        """Append another run's results; numeric stats are summed."""
        self.diagnostics += other.diagnostics
        for name in other.checker_names:
            self.diagnostics_by_checker[name] += other.diagnostics_by_checker.get(name, [])
            if name not in self.checker_names:
                self.checker_names.append(name)
        for key, value in other.stats.items():
            self.stats[key] = self.stats.get(key, 0) + value

    def to_json_lines(self) -> str:
        return "\n".join(d.to_json_str() for d in self.diagnostics)

    def to_gcc_format(self) -> str:
        return "\n".join(d.to_gcc_format() for d in self.diagnostics)

    def summary(self) -> str:
        lines = [
            f"Checker run complete: {self.total_count} diagnostics "
            f"({self.error_count} errors, {self.warning_count} warnings)",
        ]
        for name in self.checker_names:
            count = len(self.diagnostics_by_checker.get(name, ()))
            elapsed = self.stats.get(f"{name}_elapsed_ms", 0)
            lines.append(f"  {name}: {count} findings ({elapsed:.1f}ms)")
        return "\n".join(lines)


class CheckerRunner:
    """
    Runs checkers against cppcheck configurations.

    >>> runner = CheckerRunner(options={"call_policy": "all"})
    >>> print(runner.run(cfg).summary())
    """

    def __init__(
        self,
        registry: Optional[CheckerRegistry] = None,
        suppressions: Optional[SuppressionManager] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.registry = registry or _DEFAULT_REGISTRY
        self.suppressions = suppressions or SuppressionManager()
        self.options = options or {}

    def _select(self, names: Optional[Sequence[str]]) -> List[Type[Checker]]:
        if names is None:
            return list(self.registry)
        selected = []
        for name in names:
            cls = self.registry.get_by_name(name)
            if cls is None:
                logger.warning("unknown checker '%s' ignored", name)
            else:
                selected.append(cls)
        return selected

    def run(self, cfg: Any, checkers: Optional[Sequence[str]] = None) -> CheckerRunResults:
        """Run the named checkers (default: all registered) on one configuration."""
        results = CheckerRunResults()
        self.suppressions.load_inline_suppressions(cfg)
        ctx = CheckerContext(cfg=cfg, suppressions=self.suppressions, options=self.options)

        for cls in self._select(checkers):
            checker = cls()
            results.checker_names.append(cls.name)
            t0 = time.monotonic()
            try:
                checker.configure(ctx)
                checker.collect_evidence(ctx)
                checker.diagnose(ctx)
                diags = checker.report(ctx)
            except Exception as exc:
                # A failing checker is reported, the run goes on
                logger.warning("checker '%s' failed: %s", cls.name, exc, exc_info=True)
                diags = [Diagnostic(
                    error_id="checkerInternalError",
                    message=f"Checker '{cls.name}' failed: {exc}",
                    severity=DiagnosticSeverity.INFORMATION,
                    location=SourceLocation(),
                    checker_name=cls.name,
                )]
            results.stats[f"{cls.name}_elapsed_ms"] = (time.monotonic() - t0) * 1000.0
            results.diagnostics.extend(diags)
            results.diagnostics_by_checker[cls.name] = diags

        results.stats.update(ctx.stats)
        return results

    def run_all_configurations(
        self,
        data: Any,
        checkers: Optional[Sequence[str]] = None,
    ) -> CheckerRunResults:
        """Run over every configuration of a dump."""
        total = CheckerRunResults()
        for cfg in getattr(data, "configurations", None) or ():
            total.merge(self.run(cfg, checkers=checkers))
        return total


# ═════════════════════════════════════════════════════════════════════════
#  PART 6: ADDON AND COMMAND LINE
# ═════════════════════════════════════════════════════════════════════════

def run_addon(
    dump_file: str,
    checkers: Optional[Sequence[str]] = None,
    output: str = "json",
    suppress: Optional[Sequence[str]] = None,
    options: Optional[Dict[str, Any]] = None,
) -> int:
    """
    Check a ``cppcheck --dump`` file and print the findings.

    ``output`` is "json" (cppcheck addon protocol), "gcc" or "summary".
    ``suppress`` lists error ids to drop everywhere; ``options`` go to the
    checkers (call_policy, include_modulo, max_workers).

    Returns 0 when no errors were found, 1 when some were, 2 when the
    ``cppcheckdata`` module is unavailable.
    """
    try:
        from cppcheckdata import parsedump  # type: ignore[import-untyped]
    except ImportError:
        logger.error("cppcheckdata module not found")
        return 2

    data = parsedump(dump_file)

    suppressions = SuppressionManager()
    # cppcheckdata keeps parsed inline suppressions on the dump, not the cfg
    suppressions.load_inline_suppressions(data)
    for error_id in suppress or ():
        suppressions.add_global_suppression(error_id)

    runner = CheckerRunner(suppressions=suppressions, options=options)
    results = runner.run_all_configurations(data, checkers=checkers)

    if output == "json":
        text = results.to_json_lines()
    elif output == "gcc":
        text = results.to_gcc_format()
    else:
        text = results.summary()
    if text:
        sys.stdout.write(text + "\n")

    return 1 if results.error_count else 0


def _configure_logging(verbosity: int) -> None:
    """0 → WARNING, 1 → INFO, 2+ → DEBUG on the package logger."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("zerodiv_shims")
    root.setLevel(level)
    root.addHandler(handler)


def _main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point for ``zerodiv`` / ``python -m zerodiv_shims``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="zerodiv",
        description="Report divisions by a provably zero divisor in cppcheck dump files",
    )
    parser.add_argument("dump_file", nargs="?", help="file written by 'cppcheck --dump'")
    parser.add_argument("--checkers", nargs="*", default=None,
                        help="checker names to run (default: all)")
    parser.add_argument("--output", choices=["json", "gcc", "summary"], default="json",
                        help="output format (default: json)")
    parser.add_argument("--suppress", nargs="*", default=None, metavar="ERROR_ID",
                        help="error ids to suppress everywhere")
    parser.add_argument("--call-policy", choices=[p.value for p in CallReturnPolicy],
                        default=CallReturnPolicy.ANY.value,
                        help="'any': one zero return flags a call; "
                             "'all': every return must be zero")
    parser.add_argument("--no-modulo", action="store_true",
                        help="do not check the right operand of '%%'")
    parser.add_argument("-j", "--jobs", type=int, default=1,
                        help="worker threads for evaluating division sites")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="-v for info, -vv for debug logging")
    parser.add_argument("--list-checkers", action="store_true",
                        help="list available checkers and exit")

    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.list_checkers:
        for cls in _DEFAULT_REGISTRY:
            cwes = ", ".join(f"CWE-{v}" for v in sorted(set(cls.cwe_ids.values())))
            print(f"{cls.name:20s} {cls.description}")
            print(f"{'':20s} ids: {', '.join(sorted(cls.error_ids))}  ({cwes})")
        return

    if not args.dump_file:
        parser.error("the dump_file argument is required")

    sys.exit(run_addon(
        dump_file=args.dump_file,
        checkers=args.checkers,
        output=args.output,
        suppress=args.suppress,
        options={
            "call_policy": args.call_policy,
            "include_modulo": not args.no_modulo,
            "max_workers": args.jobs,
        },
    ))


if __name__ == "__main__":
    _main()


__all__ = [
    "Diagnostic",
    "DiagnosticSeverity",
    "Confidence",
    "SuppressionManager",
    "Checker",
    "CheckerContext",
    "CheckerRegistry",
    "ZeroDivisorChecker",
    "iter_division_sites",
    "CheckerRunner",
    "CheckerRunResults",
    "run_addon",
]
