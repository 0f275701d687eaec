"""
Custom exceptions for the Brewing Water MCP Server.

Tool entry points raise typed exceptions; FastMCP converts them into
isError=True responses. The calculation core itself prefers structured
warnings over exceptions (unknown salts in an additions map, infeasible
targets, zero volumes) so that an advisory result is always produced.

Exception Hierarchy:
    BrewingWaterError (base)
    ├── InputValidationError
    ├── CatalogError
    │   ├── UnknownSaltError
    │   ├── UnknownAcidError
    │   ├── UnknownGrainError
    │   └── UnknownProfileError
    └── ConvergenceError
        ├── PhConvergenceError
        └── OptimizationConvergenceError
"""

from typing import Any, Dict, List, Optional


class BrewingWaterError(Exception):
    """Base exception for all brewing water errors.

    All exceptions in this module inherit from this class,
    allowing for broad exception handling when needed.
    """
    pass


class InputValidationError(BrewingWaterError):
    """Invalid input data provided to a tool.

    Raised when:
    - Required fields are missing
    - Field values are out of valid range (negative ppm, negative grams)
    - Volumes are inconsistent (mash + sparge != total)
    - Incompatible field combinations
    """
    pass


# =============================================================================
# Catalog Errors
# =============================================================================

class CatalogError(BrewingWaterError):
    """A strict lookup in one of the static catalogs failed.

    Attributes:
        term: The identifier that was searched for
        catalog: Which catalog was searched (salt, acid, grain, water_profile, style_profile)
        suggestions: Close matches that might be what the caller meant
    """
    def __init__(
        self,
        message: str,
        term: Optional[str] = None,
        catalog: Optional[str] = None,
        suggestions: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.term = term
        self.catalog = catalog
        self.suggestions = suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured error reporting."""
        return {
            "error_type": "catalog_error",
            "term": self.term,
            "catalog": self.catalog,
            "suggestions": self.suggestions,
            "message": str(self)
        }


class UnknownSaltError(CatalogError):
    """Salt identifier not present in the salt catalog."""
    pass


class UnknownAcidError(CatalogError):
    """Acid identifier not present in the acid catalog."""
    pass


class UnknownGrainError(CatalogError):
    """Grain name not present in the grain database (strict lookup only)."""
    pass


class UnknownProfileError(CatalogError):
    """Water or style profile id not present in the profile library."""
    pass


# =============================================================================
# Convergence Errors
# =============================================================================

class ConvergenceError(BrewingWaterError):
    """Base class for iterative search convergence failures.

    The iterative calculations (advanced pH bisection, exact salt
    optimization) return best-effort results with a ``converged`` flag.
    These exceptions are only raised when a caller explicitly asks for
    a converged answer.
    """
    pass


class PhConvergenceError(ConvergenceError):
    """Charge-balance bisection did not reach the residual tolerance.

    Attributes:
        best_ph: Best pH seen before the iteration budget ran out
        residual: Charge-balance residual at best_ph (mEq/kg grain)
        iterations: Number of bisection steps performed
        tolerance: The residual tolerance that was not met
    """
    def __init__(
        self,
        message: str,
        best_ph: float,
        residual: float,
        iterations: int,
        tolerance: Optional[float] = None
    ):
        super().__init__(message)
        self.best_ph = best_ph
        self.residual = residual
        self.iterations = iterations
        self.tolerance = tolerance

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured error reporting."""
        return {
            "error_type": "ph_convergence_error",
            "best_ph": self.best_ph,
            "residual": self.residual,
            "iterations": self.iterations,
            "tolerance": self.tolerance,
            "message": str(self)
        }


class OptimizationConvergenceError(ConvergenceError):
    """Salt optimization finished without meeting its tolerance.

    Attributes:
        strategy: The optimization strategy used (minimal, balanced, exact)
        best_solution: The best salt additions found before giving up
        total_deviation: Sum of absolute ion deviations (ppm) of best_solution
        reason: Why the optimization failed
    """
    def __init__(
        self,
        message: str,
        strategy: Optional[str] = None,
        best_solution: Optional[Dict[str, float]] = None,
        total_deviation: Optional[float] = None,
        reason: Optional[str] = None
    ):
        super().__init__(message)
        self.strategy = strategy
        self.best_solution = best_solution or {}
        self.total_deviation = total_deviation
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured error reporting."""
        return {
            "error_type": "optimization_convergence_error",
            "strategy": self.strategy,
            "best_solution": self.best_solution,
            "total_deviation": self.total_deviation,
            "reason": self.reason,
            "message": str(self)
        }
