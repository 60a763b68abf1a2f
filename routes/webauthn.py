import app_context
from stores import MemoryAdapter
from web_utils import check_rate_limit
from webauthn_middleware import Webauthn


def build_store(backend=None):
    backend = (backend or app_context.STORE_BACKEND).lower()
    if backend == "memory":
        return MemoryAdapter()
    if backend == "sqlite":
        from db_utils import SQLiteAdapter

        return SQLiteAdapter(app_context.DB_PATH)
    raise ValueError(f"Unknown store backend: {backend!r}")


webauthn = Webauthn(
    origin=app_context.ORIGIN,
    rp_name=app_context.RP_NAME,
    rp_id=app_context.RP_ID,
    username_field=app_context.USERNAME_FIELD,
    user_fields={app_context.USERNAME_FIELD: app_context.USERNAME_FIELD},
    store=build_store(),
    enable_logging=app_context.LOG_REQUESTS,
)

webauthn_bp = webauthn.initialize()
webauthn_bp.before_request(check_rate_limit)
