from __future__ import annotations

import os

# Keep developer credentials out of the suite; tests inject a fake client or
# configure tokens explicitly.
for _name in ("REPLICATE_API_TOKEN", "REPLICATE_API_KEY", "GATEWAY_REPLICATE_API_TOKEN"):
    os.environ.pop(_name, None)

os.environ.setdefault("GATEWAY_CACHE_SWEEP_INTERVAL_SECONDS", "0")
