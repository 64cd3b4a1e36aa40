# hybridfs/monitoring/context.py
"""
Context helpers using contextvars for request/session/provider propagation.
"""
import contextvars

request_id_var = contextvars.ContextVar("request_id", default=None)
session_id_var = contextvars.ContextVar("session_id", default=None)
provider_var = contextvars.ContextVar("provider", default=None)

def set_request_context(request_id=None, session_id=None, provider=None):
    if request_id is not None:
        request_id_var.set(request_id)
    if session_id is not None:
        session_id_var.set(session_id)
    if provider is not None:
        provider_var.set(provider)

def get_request_context():
    return {
        "request_id": request_id_var.get(),
        "session_id": session_id_var.get(),
        "provider": provider_var.get(),
    }
