from __future__ import annotations

"""client/apunto/services/analysis/__init__.py

Document analysis request lifecycle.

- connectivity: reachability precheck run before each request
- encoding: image URI -> base64 data URI
- client: AnalysisClient, which runs one request end-to-end
"""

from apunto.services.analysis.client import AnalysisClient  # noqa: F401
