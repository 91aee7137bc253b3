"""Type definitions for incubpy package.

This module defines the core type aliases used throughout the package for
consistent type hints and maintaining compatibility between Polars and Pandas.
"""

from __future__ import annotations

from typing import Literal, TypeAlias

import pandas as pd
import polars as pl

ReturnType = Literal["pandas", "polars"]
"""Literal type for specifying return type of table-producing functions."""

Family = Literal["lognormal", "gamma", "weibull"]
"""Literal type for the parametric incubation-period families."""

ZeroWidthPolicy = Literal["drop", "nudge", "keep"]
"""Literal type for handling a bound whose left and right values coincide.

- "drop": Exclude the case (strict inequality on interval widths)
- "nudge": Widen the bound outward by a small number of days
- "keep": Keep the point bound and flag the case type accordingly
"""

AnyFrame: TypeAlias = pd.DataFrame | pl.DataFrame
"""Type alias for either Pandas or Polars DataFrame."""
