"""
Live market context injected into every Supervisor and worker prompt.

The swarm never parses this snapshot; it is pasted verbatim as background for
the specialists. Swap ``StaticMarketContext`` for a provider backed by a real
feed when one is available.
"""

import json
from datetime import datetime
from typing import Any, Dict, Optional

# Mock macro snapshot (could come from a bank-rate scraper or a weekly research note)
MOCK_MACRO_SNAPSHOT: Dict[str, Any] = {
    "gold": "SJC 85.5 - 87.5 million VND/tael",
    "usd": "25,450 VND",
    "rates": {
        "big4": "Fixed 6.5% - 8.0% for the first 12-24 months",
        "commercial": "Fixed 5.5% - 7.5% promotional, 6-12 months",
        "floating": "10.5% - 12.0% after the incentive period",
    },
    "legal": "Land Law 2024 in effect; tighter rules on land-use rights and off-plan sales",
    "infra": [
        "Ring Road 3 opening in stages",
        "Long Thanh International Airport phase 1",
        "Metro Line 1 in commercial operation",
    ],
    "trend": "down",
}


class StaticMarketContext:
    """Returns a fixed macro snapshot stamped with the current time."""

    def __init__(self, snapshot: Optional[Dict[str, Any]] = None):
        self.snapshot = snapshot if snapshot is not None else MOCK_MACRO_SNAPSHOT

    def snapshot_text(self) -> str:
        payload = {"timestamp": datetime.now().strftime("%H:%M:%S"), **self.snapshot}
        return json.dumps(payload, ensure_ascii=False)
