"""Quick step execution and defaults."""

from .defaults import DEFAULT_QUICK_STEPS, seed_default_quick_steps
from .executor import QuickStepExecutor

__all__ = ["DEFAULT_QUICK_STEPS", "QuickStepExecutor", "seed_default_quick_steps"]
