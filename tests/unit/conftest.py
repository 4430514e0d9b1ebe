"""
Unit test fixtures. Use fakes and mocks; no generators, no network.
"""
# Root conftest fixtures (profile, curriculum, profile_store, memory_cache,
# fake generators) cover unit tests; session_factory is only used by the
# persistence tests that exercise ProfileStore against in-memory SQLite.
