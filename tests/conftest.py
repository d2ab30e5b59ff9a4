"""Pytest configuration and fixtures."""
from __future__ import annotations

import pytest

from config import settings


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch) -> None:
    """Set up test environment variables"""
    monkeypatch.setenv('BOT_TOKEN', 'test_token_123456')
    monkeypatch.setenv('ADMIN_CHAT_IDS', '123456789,987654321')
    monkeypatch.setenv('CHECK_INTERVAL_SECONDS', '30')
    monkeypatch.setenv('REQUEST_DELAY_SECONDS', '0')
    monkeypatch.setenv('REQUEST_BACKOFF_FACTOR', '0')
    monkeypatch.setenv('SUBSCRIBER_QUEUE_SIZE', '4')
    settings.reload()


@pytest.fixture
def composite_html() -> str:
    """Product page that splits the price over two nodes"""
    return """
    <html>
        <body>
            <span class="a-price">
                <span class="a-price-symbol">$</span>
                <span class="a-price-whole">1,234<span class="a-price-decimal">.</span></span>
                <span class="a-price-fraction">99</span>
            </span>
        </body>
    </html>
    """


@pytest.fixture
def layered_html() -> str:
    """Page where several strategies match with different values"""
    return """
    <html>
        <head>
            <meta itemprop="price" content="49.00" />
        </head>
        <body>
            <span class="a-offscreen">$39.99</span>
            <div class="price">59,00 €</div>
        </body>
    </html>
    """


@pytest.fixture
def invalid_html() -> str:
    """HTML without any price markers"""
    return """
    <html>
        <body>
            <div>No products here</div>
        </body>
    </html>
    """
