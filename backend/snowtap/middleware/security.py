"""
SnowTap - Security Middleware

Rate limiting, Telegram initData validation, security headers.
"""

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from typing import Callable
from urllib.parse import parse_qs
import json
import time
import hashlib
import hmac

from ..config import settings


# ============================================
# RATE LIMITER
# ============================================

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)


# ============================================
# TELEGRAM VALIDATION
# ============================================

def validate_telegram_init_data(init_data: str, bot_token: str | None = None) -> dict | None:
    """
    Валидация Telegram initData.

    Официальная документация:
    https://core.telegram.org/bots/webapps#validating-data-received-via-the-mini-app

    Returns:
        {"user": {...}, "start_param": str | None} или None если невалидно
    """
    bot_token = settings.TELEGRAM_BOT_TOKEN if bot_token is None else bot_token
    if not bot_token:
        print("❌ [Security] TELEGRAM_BOT_TOKEN is not configured")
        return None

    try:
        parsed = parse_qs(init_data, keep_blank_values=True)

        received_hash = parsed.get("hash", [None])[0]
        if not received_hash:
            print("❌ [Security] No hash in initData")
            return None

        auth_date = int(parsed.get("auth_date", [0])[0])
        if time.time() - auth_date > settings.INIT_DATA_MAX_AGE_SECONDS:
            print(f"❌ [Security] initData too old: {time.time() - auth_date}s")
            return None

        # data_check_string: все поля кроме hash, отсортировано
        data_check_string = "\n".join(
            f"{key}={parsed[key][0]}"
            for key in sorted(parsed.keys())
            if key != "hash"
        )

        secret_key = hmac.new(
            b"WebAppData",
            bot_token.encode(),
            hashlib.sha256
        ).digest()

        calculated_hash = hmac.new(
            secret_key,
            data_check_string.encode(),
            hashlib.sha256
        ).hexdigest()

        # constant-time comparison
        if not hmac.compare_digest(calculated_hash, received_hash):
            print("❌ [Security] Hash mismatch")
            return None

        user_json = parsed.get("user", [None])[0]
        if not user_json:
            print("❌ [Security] No user in initData")
            return None

        user_data = json.loads(user_json)
        start_param = parsed.get("start_param", [None])[0] or None

        print(f"✅ [Security] Telegram auth OK: {user_data.get('id')}")
        return {"user": user_data, "start_param": start_param}

    except (ValueError, KeyError, TypeError) as e:
        print(f"❌ [Security] Telegram validation error: {e}")
        return None


# ============================================
# SECURITY HEADERS MIDDLEWARE
# ============================================

async def add_security_headers(request: Request, call_next: Callable):
    """Добавляет security headers ко всем ответам."""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    return response
