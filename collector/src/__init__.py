"""
Collector package for the Deye-to-PVOutput reporting job.

Polls the local Deye inverters over HTTP, averages in a fallback value for
devices that did not answer, enriches the total with weather and grid-voltage
readings, posts it to PVOutput and keeps a rolling 30-day execution history.

CHANGELOG:
- 2026-10-18: Initial creation

TODO:
- None
"""
