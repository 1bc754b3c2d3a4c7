"""
scheduler
---------

Main scheduling module. Initializes key components:

- `recurrence`, `conditions`, `materializer`: Candidate dates, condition gating and instance materialization.
- `setup`, `rules`: Solver variables and relations.
- `solver`, `diagnosis`: Arc-consistent backtracking search and CP-SAT conflict diagnosis.
- `builder`: The `schedule` / `build_schedule` entry points.

Provides high-level access to core scheduling functionality.
"""
from .builder import ScheduleOptions, build_schedule, schedule
