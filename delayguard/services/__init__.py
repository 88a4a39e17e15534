"""
Tracking core services: delay detection, poll scheduling, usage gating
and the carrier poll orchestrator.
"""
