# services/ad_service.py
import random
from typing import Any, Dict, Optional

from services.data_providers import DataProvider


class AdService(DataProvider):
    """Picks the inline ad shown beside stories"""

    filename = 'ads.json'

    def __init__(self, data_dir: str, cache=None, cache_timeout: Optional[int] = None,
                 chooser=random.choice):
        super().__init__(data_dir, cache, cache_timeout)
        self.chooser = chooser

    def inline_ad(self) -> Optional[Dict[str, Any]]:
        ads = [ad for ad in self.get_all() if ad.get('enabled', True)]
        return self.chooser(ads) if ads else None
