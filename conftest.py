"""Shared pytest configuration."""


def pytest_configure(config):
    """Configure pytest for async tests."""
    config.addinivalue_line("markers", "asyncio: mark test as an asyncio test")
