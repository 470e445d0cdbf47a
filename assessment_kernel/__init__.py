"""
Assessment kernel -- domain values, errors, logging, persistence and audit
for the vehicle-damage assessment financial engine.
"""
