"""Option records seeded on first activation."""

from __future__ import annotations

import types

from csp_manager.policy.model import PolicyContext

# Frozen so callers seeding a store cannot mutate the shared defaults.
DEFAULT_OPTIONS: types.MappingProxyType = types.MappingProxyType({
    PolicyContext.ADMIN.option_name: types.MappingProxyType({
        "mode": "report",
        "enable_default-src": 1,
        "default-src": "'self'",
    }),
    PolicyContext.LOGGED_IN.option_name: types.MappingProxyType({
        "mode": "disabled",
        "enable_default-src": 1,
        "default-src": "'self'",
    }),
    PolicyContext.FRONTEND.option_name: types.MappingProxyType({
        "mode": "disabled",
        "enable_default-src": 1,
        "default-src": "'self'",
    }),
})
