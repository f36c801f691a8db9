"""Scan cycle pipeline for SqueezeScan.

This package provides the components for one scan cycle:
- ScanOrchestrator: universe -> metrics -> scoring -> enrichment -> persistence -> subscriptions
- ScanJobRunner: runs cycles in the background and tracks them by job id
- PriceSnapshotJob: nightly last-close pass that rebuilds the filtered ticker file
- CycleState / CycleResult / JobHandle: progress and outcome reporting
"""
