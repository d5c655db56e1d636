"""
transit-spine - mirror transit schedule data into discussion topics.

- transit_spine.core: errors, hashing, logging, settings, run ids
- transit_spine.domain: entities, lifecycle states, comparators
- transit_spine.diff: diff engine, run coordinator, run report
- transit_spine.storage: SQLite-backed keyed tables
- transit_spine.publish: topic rendering and publishing
"""

__version__ = "0.1.0"
