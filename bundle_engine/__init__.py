"""
Bundle Evaluation Engine

This package scores PC-component bundles along two axes:
- Physical compatibility (sockets, memory generation, PSU headroom, GPU fit)
- Comfort (a regression model's prediction blended with user-review statistics)

Key Design Decisions:
- The compatibility checker is a pure rule engine with no I/O
- The regression model is an opaque predict/fit/save/load capability
- Observed review data is trusted over the model in proportion to review volume
- Duplicate products are reconciled before scoring so review statistics stay honest
"""

__version__ = "1.0.0"
