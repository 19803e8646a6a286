"""
Services Layer

Business logic around the round formats that:
- Accept domain inputs (event snapshots, rounds, sessions)
- Return domain outputs (races, results, reports)
- Do NOT depend on any UI or transport
- Do NOT write to the database unless explicitly designed to (race_store)
"""
