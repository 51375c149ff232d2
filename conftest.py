import os, time, asyncio
import pytest
import platform

import socket as _socket

# ============================================================================
# Windows asyncio event loop policy
# ============================================================================
# ProactorEventLoop has issues with socket pairs used by pytest.
# Use SelectorEventLoop instead for test stability.
# ============================================================================
if platform.system() == "Windows":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())


@pytest.fixture(scope="session")
def event_loop_policy():
    if platform.system() == "Windows":
        return asyncio.WindowsSelectorEventLoopPolicy()
    return asyncio.get_event_loop_policy()


# ============================================================================
# Prometheus registry isolation
# ============================================================================
# Metrics() registers its collectors in the default REGISTRY unless a
# registry is passed. Clear it before and after each test so repeated
# Metrics() construction never hits duplicate-timeseries errors.
# ============================================================================

def _unregister_all():
    from prometheus_client import REGISTRY
    for collector in list(REGISTRY._collector_to_names.keys()):
        try:
            REGISTRY.unregister(collector)
        except KeyError:
            pass


@pytest.fixture(autouse=True)
def _clear_prometheus_registry():
    _unregister_all()
    yield
    _unregister_all()


@pytest.hookimpl(tryfirst=True)
def pytest_configure(config):
    os.environ.setdefault("TZ", "UTC")
    if hasattr(time, "tzset"):
        time.tzset()


@pytest.fixture(autouse=True)
def _deny_network_calls(monkeypatch):
    original_connect = _socket.socket.connect

    def _selective_deny_connect(self, *args, **kwargs):
        # Allow localhost connections for the asyncio event loop
        if args:
            addr = args[0]
            if isinstance(addr, tuple) and addr and addr[0] in ('127.0.0.1', 'localhost', '::1'):
                return original_connect(self, *args, **kwargs)
        raise RuntimeError("Network disabled in tests")

    monkeypatch.setattr(_socket.socket, "connect", _selective_deny_connect, raising=True)
    yield


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    test_function = pyfuncitem.obj
    if asyncio.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            argnames = pyfuncitem._fixtureinfo.argnames
            loop.run_until_complete(test_function(**{k: pyfuncitem.funcargs[k] for k in argnames}))
        finally:
            try:
                loop.close()
            finally:
                asyncio.set_event_loop(None)
        return True
    return None
