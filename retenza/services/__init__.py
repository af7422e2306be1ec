"""
Business logic services for Retenza.

Import services from their modules (e.g. retenza.services.points_service);
models depend on loyalty_rules, so this package keeps no eager imports.
"""
