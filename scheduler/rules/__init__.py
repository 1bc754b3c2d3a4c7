"""
scheduler.rules
---------------

Exposes all rule functions that turn links and constraints into solver relations:

- `links`: Chain links (child date minus parent date within the wobble range).
- `relational`: Day-level, ordering and mustBeWithin constraints between targets.
- `overlap`: No two timed instances share any minute.

Allows unified access to all rule definitions via wildcard imports.
"""
from .links import *
from .relational import *
from .overlap import *
