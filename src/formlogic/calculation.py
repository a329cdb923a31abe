"""CalculationEngine — formula fields resolved to a fixed point.

A calculation run works on a numeric *context* (field id -> number):

  1. The context is seeded from every answer whose value coerces to a number
     under the source field's type (see ``coercion.NUMERIC_COERCERS``).
  2. Passes are repeated, at most ``PASSES_PER_FIELD x len(fields)`` times.
     In each pass every unresolved calculation field whose declared
     dependencies are all present is evaluated; its raw number enters the
     context so later fields can read it.
  3. The loop stops as soon as every calculation field is resolved or a pass
     makes no progress.  Fields that never become computable are omitted.

Formula reduction happens in text before the arithmetic parser sees it:

  - ``{{id}}`` tokens become the context value (``0`` when absent); a token
    that is a whole aggregate argument is read as a bare field id first
  - calls to ``SUM AVG MIN MAX COUNT IF SQRT ABS ROUND`` are expanded
    innermost-first, case-insensitively
  - anything that is not plain arithmetic is stripped

A formula that still fails evaluates to ``0`` with a recorded diagnostic.
"""

from __future__ import annotations

import logging
import math
import re
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any, Mapping, Optional, Sequence

from formlogic.arithmetic import (
    DivisionByZeroError,
    FormulaError,
    parse_expression,
    sanitize,
)
from formlogic.coercion import numeric_value
from formlogic.config import EngineSettings, load_settings
from formlogic.constants import (
    AGGREGATE_FUNCTIONS,
    DISPLAY_TYPES,
    MAX_FORMULA_DEPTH,
    PASSES_PER_FIELD,
)
from formlogic.models.field import FormField, ordered_fields
from formlogic.models.response import ResponseMap
from formlogic.models.result import CalculationRun, ValidationResult, freeze

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"\{\{\s*([^}]+?)\s*\}\}")
_CALL_START = re.compile(r"\b(SUM|AVG|MIN|MAX|COUNT|IF|SQRT|ABS|ROUND)\s*\(", re.IGNORECASE)
_AGGREGATE_CALL = re.compile(r"\b(?:SUM|AVG|MIN|MAX|COUNT)\s*\(([^()]*)\)", re.IGNORECASE)
_FIELD_ID = re.compile(r"[A-Za-z_][\w-]*")
# IF conditions additionally keep the comparison characters.
_NON_CONDITION = re.compile(r"[^0-9+\-*/().<>=!\s]")

_MAX_ROUND_DIGITS = 10
# Wide enough to quantize any finite float.
_WIDE = Context(prec=400)


def _number_text(value: float) -> str:
    """Plain decimal text for a number, parenthesized when negative."""
    text = format(Decimal(repr(float(value))), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"({text})" if text.startswith("-") else text


def _round_half_up(value: float, digits: int = 0) -> Decimal:
    digits = max(0, min(digits, _MAX_ROUND_DIGITS))
    quantum = Decimal(1).scaleb(-digits)
    return Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP, context=_WIDE)


def _matching_paren(text: str, open_index: int) -> Optional[int]:
    depth = 0
    for i in range(open_index, len(text)):
        if text[i] == "(":
            depth += 1
        elif text[i] == ")":
            depth -= 1
            if depth == 0:
                return i
    return None


def _bare_token(arg: str) -> str:
    """``{{id}}`` -> ``id`` when the token is the whole argument."""
    match = _TOKEN.fullmatch(arg)
    return match.group(1) if match else arg


def _split_args(text: str) -> list[str]:
    """Split a call's argument text on top-level commas."""
    args: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            args.append("".join(current))
            current = []
            continue
        current.append(ch)
    args.append("".join(current))
    return [a.strip() for a in args]


class CalculationEngine:
    """Evaluates calculation formulas over a form's answers."""

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self._settings = settings or load_settings()

    # ==================================================================
    # Fixed-point run
    # ==================================================================

    def resolve(self, fields: Sequence[FormField], responses: ResponseMap) -> dict[str, Any]:
        """Return the display-formatted value of every resolvable calculation field."""
        return dict(self.run(fields, responses).values)

    def run(self, fields: Sequence[FormField], responses: ResponseMap) -> CalculationRun:
        ordered = ordered_fields(fields)
        diagnostics: list[str] = []
        context = self.seed_context(ordered, responses)

        calc_fields: list[FormField] = []
        seen: set[str] = set()
        for field in ordered:
            if field.has_calculation and field.id not in seen:
                seen.add(field.id)
                calc_fields.append(field)

        resolved: dict[str, float] = {}
        values: dict[str, Any] = {}
        max_passes = PASSES_PER_FIELD * len(fields)
        passes = 0

        while len(resolved) < len(calc_fields) and passes < max_passes:
            passes += 1
            progressed = False
            for field in calc_fields:
                if field.id in resolved or not self._can_calculate(field, context, resolved):
                    continue
                raw = self._calculate_field(field, context, diagnostics)
                resolved[field.id] = raw
                context[field.id] = raw
                values[field.id] = self.format_value(raw, field.calculation.display_type)
                progressed = True
            if not progressed:
                break

        unresolved = tuple(f.id for f in calc_fields if f.id not in resolved)
        logger.debug(
            "Calculation run: %d/%d resolved in %d passes", len(resolved), len(calc_fields), passes,
        )
        return CalculationRun(
            values=freeze(values),
            raw_values=freeze(resolved),
            passes=passes,
            unresolved=unresolved,
            warnings=tuple(diagnostics),
        )

    @staticmethod
    def seed_context(fields: Sequence[FormField], responses: ResponseMap) -> dict[str, float]:
        """Numeric context from every answered field with a numeric meaning."""
        context: dict[str, float] = {}
        for field in fields:
            if field.id in context:
                continue
            number = numeric_value(responses.get(field.id), field.type)
            if number is not None:
                context[field.id] = number
        return context

    @staticmethod
    def _can_calculate(field: FormField, context: Mapping[str, float], resolved: Mapping[str, float]) -> bool:
        if not field.calculation.formula:
            return False
        return all(dep in context or dep in resolved for dep in field.calculation.dependencies)

    def _calculate_field(self, field: FormField, context: Mapping[str, float], diagnostics: list[str]) -> float:
        try:
            return self.evaluate_formula(field.calculation.formula, context)
        except FormulaError as exc:
            message = f"Calculation error for field {field.id}: {exc}"
            logger.warning(message)
            diagnostics.append(message)
            return 0.0

    # ==================================================================
    # Formula reduction
    # ==================================================================

    def evaluate_formula(self, formula: str, context: Mapping[str, float]) -> float:
        """Reduce and evaluate one formula strictly.

        Raises:
            FormulaError: when the reduced formula is not valid arithmetic.
        """
        reduced = self.reduce_formula(formula, context)
        sanitized = sanitize(reduced)
        if not sanitized.strip():
            return 0.0
        return parse_expression(sanitized)

    def reduce_formula(self, formula: str, context: Mapping[str, float]) -> str:
        """Substitute field tokens, then expand built-in function calls.

        A token that is a whole aggregate argument is first unwrapped to a
        bare field id, so ``COUNT({{a}}, {{b}})`` skips an unanswered field
        exactly like ``COUNT(a, b)``.
        """
        unwrapped = self._unwrap_aggregate_tokens(formula, 0)
        substituted = _TOKEN.sub(lambda m: self._token_text(m.group(1), context), unwrapped)
        return self._expand_calls(substituted, context, 0)

    def _unwrap_aggregate_tokens(self, text: str, depth: int) -> str:
        if depth > MAX_FORMULA_DEPTH:
            raise FormulaError("Function calls are nested too deeply")

        out: list[str] = []
        pos = 0
        while True:
            match = _CALL_START.search(text, pos)
            if match is None:
                out.append(text[pos:])
                break
            close = _matching_paren(text, match.end() - 1)
            if close is None:
                # Left for _expand_calls to report.
                out.append(text[pos:])
                break
            args = [
                self._unwrap_aggregate_tokens(arg, depth + 1)
                for arg in _split_args(text[match.end():close])
            ]
            if match.group(1).upper() in AGGREGATE_FUNCTIONS:
                args = [_bare_token(arg) for arg in args]
            out.append(text[pos:match.end()])
            out.append(", ".join(args))
            out.append(")")
            pos = close + 1
        return "".join(out)

    @staticmethod
    def _token_text(field_id: str, context: Mapping[str, float]) -> str:
        value = context.get(field_id.strip())
        return _number_text(value) if value is not None else "0"

    def _expand_calls(self, text: str, context: Mapping[str, float], depth: int) -> str:
        if depth > MAX_FORMULA_DEPTH:
            raise FormulaError("Function calls are nested too deeply")

        out: list[str] = []
        pos = 0
        while True:
            match = _CALL_START.search(text, pos)
            if match is None:
                out.append(text[pos:])
                break
            out.append(text[pos:match.start()])
            name = match.group(1).upper()
            close = _matching_paren(text, match.end() - 1)
            if close is None:
                raise FormulaError(f"Unbalanced parentheses in {name}(...)")
            args = [
                self._expand_calls(arg, context, depth + 1)
                for arg in _split_args(text[match.end():close])
            ]
            out.append(_number_text(self._call(name, args, context)))
            pos = close + 1
        return "".join(out)

    def _call(self, name: str, args: list[str], context: Mapping[str, float]) -> float:
        if name in AGGREGATE_FUNCTIONS:
            return self._aggregate(name, args, context)

        if name == "IF":
            if len(args) != 3:
                raise FormulaError(f"IF expects 3 arguments, got {len(args)}")
            condition, when_true, when_false = args
            try:
                chosen = when_true if self._condition(condition) else when_false
            except FormulaError:
                chosen = when_false
            return self._argument(chosen, context) or 0.0

        value = self._argument(args[0], context) if args else None
        if value is None:
            raise FormulaError(f"{name} expects a numeric argument")

        if name == "SQRT":
            if value < 0:
                raise FormulaError("SQRT of a negative number")
            return math.sqrt(value)
        if name == "ABS":
            return abs(value)
        # ROUND
        digits = self._argument(args[1], context) if len(args) > 1 else 0
        return float(_round_half_up(value, int(digits or 0)))

    def _aggregate(self, name: str, args: list[str], context: Mapping[str, float]) -> float:
        values = [self._argument(arg, context) for arg in args if arg]
        if name == "COUNT":
            return float(sum(1 for v in values if v is not None))
        numbers = [v if v is not None else 0.0 for v in values]
        if not numbers:
            return 0.0
        if name == "SUM":
            return sum(numbers)
        if name == "AVG":
            return sum(numbers) / len(numbers)
        if name == "MIN":
            return min(numbers)
        return max(numbers)

    @staticmethod
    def _argument(text: str, context: Mapping[str, float]) -> Optional[float]:
        """A call argument is a field id or arithmetic; None when neither resolves."""
        text = text.strip()
        if not text:
            return None
        if text in context:
            return context[text]
        try:
            return parse_expression(text)
        except FormulaError:
            return None

    @staticmethod
    def _condition(text: str) -> bool:
        return parse_expression(_NON_CONDITION.sub("", text), allow_comparison=True) != 0

    # ==================================================================
    # Formatting
    # ==================================================================

    def format_value(self, value: float, display_type: str) -> Any:
        """Format a raw result for display.

        ``currency`` -> ``-$1,234.50``; ``percentage`` -> ``25.00%``;
        ``decimal`` -> float with two decimals; anything else -> int rounded
        half up.
        """
        if display_type == "currency":
            amount = _round_half_up(abs(value), 2)
            sign = "-" if value < 0 and amount != 0 else ""
            return f"{sign}{self._settings.currency_symbol}{amount:,.2f}"
        if display_type == "percentage":
            return f"{_round_half_up(value, 2):,.2f}%"
        if display_type == "decimal":
            return float(_round_half_up(value, 2))
        return math.floor(value + 0.5)

    # ==================================================================
    # Dependency graph
    # ==================================================================

    @staticmethod
    def get_calculation_dependencies(field: FormField) -> list[str]:
        """Every field id a formula reads, in first-seen order.

        Declared dependencies, ``{{id}}`` tokens and the field-id arguments
        of aggregate calls.
        """
        if not field.has_calculation or not field.calculation.formula:
            return []
        formula = field.calculation.formula
        deps: dict[str, None] = dict.fromkeys(field.calculation.dependencies)
        for match in _TOKEN.finditer(formula):
            deps[match.group(1).strip()] = None
        # Arithmetic arguments contribute only their tokens, collected above.
        for match in _AGGREGATE_CALL.finditer(formula):
            for arg in _split_args(match.group(1)):
                arg = _TOKEN.sub(lambda m: m.group(1), arg).strip()
                if _FIELD_ID.fullmatch(arg):
                    deps[arg] = None
        return list(deps)

    def detect_circular_dependencies(self, fields: Sequence[FormField]) -> list[str]:
        """Return the first dependency cycle found, closed by its first node.

        ``[A, B, A]`` for ``A -> B -> A``; an empty list when acyclic.  The
        search is iterative so long chains stay within the recursion limit.
        """
        graph: dict[str, list[str]] = {}
        for field in ordered_fields(fields):
            if field.has_calculation:
                graph.setdefault(field.id, self.get_calculation_dependencies(field))

        visited: set[str] = set()
        for start in graph:
            if start in visited:
                continue
            visited.add(start)
            path = [start]
            on_path = {start}
            stack = [iter(graph[start])]
            while stack:
                dep = next(stack[-1], None)
                if dep is None:
                    stack.pop()
                    on_path.discard(path.pop())
                    continue
                if dep in on_path:
                    return path[path.index(dep):] + [dep]
                if dep in visited:
                    continue
                visited.add(dep)
                path.append(dep)
                on_path.add(dep)
                stack.append(iter(graph.get(dep, [])))
        return []

    # ==================================================================
    # Author-time validation
    # ==================================================================

    def validate(self, fields: Sequence[FormField]) -> ValidationResult:
        """Check formulas, references and the dependency graph.

        Errors: no formula, references to nonexistent fields,
        self-reference, circular dependencies.  Warnings: formulas that
        fail a dry run with every dependency set to 1, unknown display
        types.
        """
        errors: list[str] = []
        warnings: list[str] = []
        field_ids = {f.id for f in fields}

        for field in ordered_fields(fields):
            if not field.has_calculation:
                continue
            calculation = field.calculation

            if not calculation.formula:
                errors.append(f"Field {field.id}: Calculation is enabled but no formula is provided")
                continue

            for dep in calculation.dependencies:
                if dep not in field_ids:
                    errors.append(f"Field {field.id}: Calculation depends on non-existent field {dep}")

            dependencies = self.get_calculation_dependencies(field)
            for ref in dependencies:
                if ref not in field_ids and ref not in calculation.dependencies:
                    errors.append(f"Field {field.id}: Formula references non-existent field {ref}")

            if field.id in dependencies:
                errors.append(f"Field {field.id}: Calculation cannot reference itself")

            try:
                self.evaluate_formula(calculation.formula, dict.fromkeys(dependencies, 1.0))
            except DivisionByZeroError:
                pass
            except FormulaError as exc:
                warnings.append(f"Field {field.id}: Formula may have syntax issues - {exc}")

            if calculation.display_type not in DISPLAY_TYPES:
                warnings.append(f"Field {field.id}: Invalid display type {calculation.display_type}")

        cycle = self.detect_circular_dependencies(fields)
        if cycle:
            errors.append(f"Circular dependency detected in fields: {' -> '.join(cycle)}")

        return ValidationResult.build(errors, warnings)
