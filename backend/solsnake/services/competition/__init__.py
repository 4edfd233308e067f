"""Competition domain services: period clock, ranking, pot and rollover.

Pure(ish) domain logic imported by HTTP routes, socket handlers and the
rollover timer, keeping transport concerns separated from the competition
rules.
"""
