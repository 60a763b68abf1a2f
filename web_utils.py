import time
from functools import wraps

from flask import current_app, jsonify, request

from app_context import RATE_LIMIT_PER_MINUTE, cache


def check_rate_limit(max_per_minute=None):
    """Record this request and return a 429 response once the client is over budget."""
    if max_per_minute is None:
        max_per_minute = current_app.config.get("RATE_LIMIT_PER_MINUTE", RATE_LIMIT_PER_MINUTE)
    if not max_per_minute:
        return None

    ip = request.remote_addr
    current_time = time.time()

    cache_copy = dict(cache)
    for key, timestamps in cache_copy.items():
        cache[key] = [t for t in timestamps if current_time - t < 60]
        if not cache[key]:
            del cache[key]

    if ip in cache and len(cache[ip]) >= max_per_minute:
        return jsonify({"error": "Rate limit exceeded"}), 429

    cache.setdefault(ip, []).append(current_time)
    return None


def rate_limit(max_per_minute=None):
    def decorator(f):
        @wraps(f)
        def wrapper(*args, **kwargs):
            limited = check_rate_limit(max_per_minute)
            if limited is not None:
                return limited
            return f(*args, **kwargs)

        return wrapper

    return decorator
