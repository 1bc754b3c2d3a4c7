"""
core
----

Core scheduling engine components:

- Slot, Instance, Relation & RelationModel:  
  Domain values, materialized instances and the binary relations between them.

- HardRule & define_hard_rules:  
  One assumption flag per link / constraint for the CP-SAT conflict diagnosis.

- ConstraintManager:  
  Register and apply rule functions in a controlled sequence.

- ScheduleState:  
  Encapsulate all inputs, parameters, and intermediate collections needed to
  turn materialized instances into solver variables and relations.
"""
