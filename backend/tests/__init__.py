"""
Pytest suite for the EV rental order core backend.

Test categories:
- Unit tests: state machine, normalization, models, services with a mocked backend
- API tests: FastAPI app over ASGITransport with an in-memory SQLite ledger
- Edge case tests: callback redelivery, degraded confirmation, tier boundaries
"""
