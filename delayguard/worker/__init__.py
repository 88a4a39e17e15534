"""
DelayGuard Worker Service.

Processes Cloud Tasks carrier polls and Cloud Scheduler poll sweeps.
"""
