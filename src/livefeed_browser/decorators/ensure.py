# livefeed_browser/decorators/ensure.py
import inspect
import functools

from ..errors import SessionNotStartedError

import logging
logger = logging.getLogger(__name__)

_RAISE = object()


def ensure_session_started(_func=None, *, default=_RAISE):
    """
    Guard a session method so it never touches a stopped session.

    Without `default` the call raises SessionNotStartedError; with it, the
    call logs a warning and returns `default` instead.
    """
    def decorator(fn):
        def refuse(self):
            message = f"{fn.__name__}() called on a session that is not started."
            if default is _RAISE:
                raise SessionNotStartedError(message + " Call start() first.")
            logger.warning(message)
            return default

        if inspect.iscoroutinefunction(fn):
            @functools.wraps(fn)
            async def wrapper(self, *args, **kwargs):
                if self.protocol is None:
                    return refuse(self)
                return await fn(self, *args, **kwargs)
            return wrapper
        else:
            @functools.wraps(fn)
            def wrapper(self, *args, **kwargs):
                if self.protocol is None:
                    return refuse(self)
                return fn(self, *args, **kwargs)
            return wrapper
    return decorator if _func is None else decorator(_func)
