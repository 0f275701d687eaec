"""
Bounded iterative search strategies used by the pH and salt calculations.

Both searches are best effort: they always return the best point seen,
together with a converged flag, and never raise on an exhausted budget.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)


class ConvergenceStrategy:
    """Search strategies for the calculations that have no closed form."""

    @staticmethod
    def bisect(
        residual: Callable[[float], float],
        low: float,
        high: float,
        max_iterations: int = 100,
        tolerance: float = 1e-6,
    ) -> Dict[str, Any]:
        """
        Find the root of an increasing residual function by bisection.

        A positive residual means the current point is too high, so the
        upper bound moves down; otherwise the lower bound moves up.

        Args:
            residual: Monotonically increasing function of the search variable
            low: Lower bracket
            high: Upper bracket
            max_iterations: Iteration budget
            tolerance: Stop once |residual| falls below this value

        Returns:
            Dictionary with the best point, its residual, the iteration count
            and whether the tolerance was met
        """
        best_x = (low + high) / 2
        best_error = float("inf")
        best_residual = float("nan")
        iterations = 0
        converged = False

        for iterations in range(1, max_iterations + 1):
            x = (low + high) / 2
            error = residual(x)

            if abs(error) < best_error:
                best_error = abs(error)
                best_residual = error
                best_x = x

            if abs(error) < tolerance:
                converged = True
                break

            if error > 0:
                high = x
            else:
                low = x

        if not converged:
            logger.debug(
                f"Bisection stopped after {iterations} iterations, best residual {best_residual:.3e}"
            )

        return {
            "x": best_x,
            "residual": best_residual,
            "iterations": iterations,
            "converged": converged,
        }

    @staticmethod
    def coordinate_refine(
        objective: Callable[[np.ndarray], float],
        start: Sequence[float],
        step_sizes: Sequence[float],
        iterations_per_step: int,
        lower: float = 0.0,
        upper: Optional[float] = None,
        stop_below: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Decreasing step-size coordinate search.

        For each step size, every coordinate is nudged by +step and -step in
        turn and a change is kept only if it strictly lowers the objective.
        Coordinates stay within [lower, upper].

        Args:
            objective: Function to minimise
            start: Initial point
            step_sizes: Step sizes, largest first
            iterations_per_step: Sweeps allowed per step size
            lower: Lower bound for every coordinate
            upper: Upper bound for every coordinate (None for unbounded)
            stop_below: Stop as soon as the objective drops below this value

        Returns:
            Dictionary with the best point, its objective value, sweeps used
            and whether stop_below was reached
        """
        current = np.array(start, dtype=float)
        if upper is not None:
            current = np.clip(current, lower, upper)
        else:
            current = np.maximum(current, lower)
        best_value = objective(current)
        sweeps = 0
        reached = stop_below is not None and best_value < stop_below
        history: List[float] = [best_value]

        for step in step_sizes:
            if reached:
                break
            for _ in range(iterations_per_step):
                sweeps += 1
                improved = False
                for index in range(len(current)):
                    for direction in (1.0, -1.0):
                        candidate = current.copy()
                        candidate[index] = candidate[index] + direction * step
                        if candidate[index] < lower:
                            continue
                        if upper is not None and candidate[index] > upper:
                            candidate[index] = upper
                            if candidate[index] == current[index]:
                                continue
                        value = objective(candidate)
                        if value < best_value:
                            best_value = value
                            current = candidate
                            improved = True
                history.append(best_value)

                if stop_below is not None and best_value < stop_below:
                    reached = True
                    break
                if not improved:
                    # Nothing moved at this step size; go finer
                    break

        return {
            "x": current,
            "value": best_value,
            "sweeps": sweeps,
            "converged": reached,
            "history": history,
        }
