"""
Services Layer for the Billing Core.

Subpackages:
- edi: X12 generation, parsing and clearinghouse exchange
- denials: denial loading, triage and appeal management
- audit: authorization audit trail
- reports: report definition execution and persistence

Import services from their modules; this package keeps no singletons.
"""
